"""Canonical Pydantic models shared across all dashlink modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`AuthConfig`, :class:`RequestConfig`, :class:`ProbeConfig`,
    :class:`CacheConfig`, :class:`SupervisorConfig`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

**Runtime value types** -- produced and consumed by the network core:
    :class:`DiagnosisKind`, :class:`Diagnosis`, :class:`ProbeResult`,
    :class:`CacheEntry`, :class:`ConnectionStatus`, and
    :class:`ConnectionState`.

All models use Pydantic v2. Value types that must not change after creation
(:class:`Diagnosis`, :class:`ProbeResult`, :class:`CacheEntry`) are frozen.
"""

from __future__ import annotations

import enum
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


# --- Auth Config ---


class AuthConfig(BaseModel):
    """Where the session credential for the backend comes from.

    The resolved credential is sent as ``Authorization: <scheme> <token>`` on
    every fetch and on the session-validity probe. ``source`` uses the same
    descriptors as :func:`~dashlink.config.resolve_credential`.

    Example::

        AuthConfig(source="env:DASHLINK_TOKEN")
    """

    source: Optional[str] = Field(
        default=None,
        description="Credential source: env:VAR or file:/path. None disables auth.",
    )
    scheme: str = Field(default="Bearer", description="Authorization header scheme")


# --- Request / probe / cache / supervisor config ---


class RequestConfig(BaseModel):
    """Settings for regular data requests made by the fetcher."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    max_retries: int = Field(
        default=0, ge=0, description="Retry attempts on network errors and 5xx"
    )


class ProbeConfig(BaseModel):
    """Targets and timeouts for the connectivity diagnosis cascade."""

    timeout: float = Field(default=5.0, gt=0, description="Per-probe timeout in seconds")
    internet_host: str = Field(
        default="8.8.8.8", description="Well-known anchor used to test internet reachability"
    )
    internet_port: int = Field(default=53, description="TCP port on the internet anchor")
    health_path: str = Field(default="/health", description="Backend liveness endpoint")
    auth_check_path: str = Field(
        default="/api/v1/auth/check", description="Backend session-validity endpoint"
    )


class CacheConfig(BaseModel):
    """Response cache settings.

    ``dashboard_ttl_seconds`` applies to keys starting with ``dashboard`` and
    ``plugin_ttl_seconds`` to keys starting with ``plugin-``; everything else
    falls back to ``default_ttl_seconds``.
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    default_ttl_seconds: int = Field(default=3600, description="Fallback TTL in seconds")
    dashboard_ttl_seconds: int = Field(default=300, description="TTL for dashboard data")
    plugin_ttl_seconds: int = Field(default=1800, description="TTL for plugin data")


class SupervisorConfig(BaseModel):
    """Settings for the background reconnect supervisor."""

    interval_seconds: float = Field(
        default=30.0, gt=0, description="Seconds between background connectivity ticks"
    )


class OutputConfig(BaseModel):
    """Output formatting preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """Top-level dashlink configuration.

    Persisted as ``config.json`` in the config directory by
    :func:`~dashlink.config.save_global_config`. Every field has a
    default so that an empty or missing file yields a usable config, with
    the exception of ``base_url`` which must be set before any network
    operation.
    """

    base_url: Optional[str] = Field(
        default=None, description="Backend base URL, e.g. https://dashboard.example.com"
    )
    auth: AuthConfig = Field(default_factory=AuthConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    probes: ProbeConfig = Field(default_factory=ProbeConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        if not value:
            return None
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"base_url must be an absolute http(s) URL, got: {value!r}")
        return value

    @property
    def hostname(self) -> Optional[str]:
        """Hostname embedded in :attr:`base_url`, or ``None`` when unset."""
        if self.base_url is None:
            return None
        return urlsplit(self.base_url).hostname


# --- Diagnosis ---


class DiagnosisKind(str, enum.Enum):
    """Closed set of connectivity failure causes.

    ``NONE`` means the cascade found nothing wrong and is the only kind
    under which normal operation may proceed.
    """

    NONE = "none"
    NO_INTERNET = "no_internet"
    DNS_RESOLUTION = "dns_resolution"
    SERVER_UNREACHABLE = "server_unreachable"
    AUTH_EXPIRED = "auth_expired"
    UNKNOWN = "unknown"


class Diagnosis(BaseModel):
    """A classified, human-actionable explanation for a connectivity failure.

    Instances are immutable and produced fresh by every
    :meth:`~dashlink.diagnostics.ConnectivityDiagnostician.diagnose` call.

    Attributes:
        kind: The failure class.
        message: Short headline suitable for a dialog title.
        detail: One-sentence explanation, may name the failing host.
        hints: Ordered troubleshooting steps for the user.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosisKind
    message: str = ""
    detail: str = ""
    hints: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """``True`` only for :attr:`DiagnosisKind.NONE`."""
        return self.kind is DiagnosisKind.NONE

    @classmethod
    def healthy(cls) -> Diagnosis:
        return cls(kind=DiagnosisKind.NONE, message="Connected", detail="No problems found.")


class ProbeResult(BaseModel):
    """Outcome of a single cascade step. Transient; never persisted."""

    model_config = ConfigDict(frozen=True)

    probe: str
    ok: bool
    diagnosis: Optional[Diagnosis] = None
    elapsed_ms: float = 0.0


# --- Cache entry ---


class CacheEntry(BaseModel):
    """A cached value together with its storage and expiry timestamps.

    Timestamps are POSIX seconds. ``expires_at`` is never earlier than
    ``stored_at``. ``stale`` marks an entry stored with a TTL of zero or
    less; it is expired from the moment it is written.
    """

    model_config = ConfigDict(frozen=True)

    value: Any = None
    stored_at: float
    expires_at: float
    stale: bool = False

    @field_validator("expires_at")
    @classmethod
    def _not_before_stored(cls, value: float, info: ValidationInfo) -> float:
        stored_at = info.data.get("stored_at")
        if stored_at is not None and value < stored_at:
            raise ValueError("expires_at must not be earlier than stored_at")
        return value

    def is_expired(self, now: float) -> bool:
        return self.stale or now > self.expires_at


# --- Connection state ---


class ConnectionStatus(str, enum.Enum):
    """States of the :class:`~dashlink.supervisor.ReconnectSupervisor`."""

    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    AWAITING_USER_CHOICE = "awaiting_user_choice"


class ConnectionState(BaseModel):
    """Last known connectivity as tracked by the supervisor."""

    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_known_good: Optional[bool] = None
    last_checked_at: Optional[float] = None
    last_diagnosis: Optional[Diagnosis] = None
