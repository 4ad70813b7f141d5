"""Connectivity diagnosis cascade.

:class:`ConnectivityDiagnostician` explains *why* the dashboard backend
cannot be used by running four probes in a fixed order and reporting the
first one that fails:

1. **internet** -- TCP connect to a well-known anchor (``8.8.8.8:53``).
2. **dns** -- resolve the hostname embedded in ``base_url``.
3. **health** -- ``GET /health`` on the backend over verified TLS, expect 2xx.
4. **auth** -- authenticated ``GET /api/v1/auth/check``; 401/403 means the
   session expired. Any other failure here is left to the health probe.

The order matters: an offline laptop must never be told that its session
expired. Each probe carries its own timeout, so a full cascade finishes in
at most four probe timeouts regardless of network conditions.

The cascade is single-flight: while one is running, further
:meth:`ConnectivityDiagnostician.diagnose` calls from other threads wait
for it and receive the same :class:`~dashlink.models.Diagnosis`.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

import httpx

from dashlink.config import auth_headers, require_base_url
from dashlink.exceptions import ConfigError
from dashlink.models import Diagnosis, DiagnosisKind, GlobalConfig, ProbeResult

logger = logging.getLogger(__name__)

Resolver = Callable[[str, float], None]
"""Resolves a hostname within a timeout; raises :class:`OSError` on failure."""

Connector = Callable[[str, int, float], None]
"""Opens and closes a TCP connection within a timeout; raises :class:`OSError` on failure."""

PROBE_INTERNET = "internet"
PROBE_DNS = "dns"
PROBE_HEALTH = "health"
PROBE_AUTH = "auth"

_DIAGNOSIS_TEXT: dict[DiagnosisKind, tuple[str, str, tuple[str, ...]]] = {
    DiagnosisKind.NO_INTERNET: (
        "No internet connection",
        "Please check your internet connection.",
        (
            "Check your Wi-Fi or LAN connection",
            "Contact your network administrator if needed",
            "Check your firewall settings",
        ),
    ),
    DiagnosisKind.DNS_RESOLUTION: (
        "Server not reachable",
        "The server could not be resolved.",
        (
            "Check the DNS server settings",
            "Flush the DNS cache",
            "Contact support",
        ),
    ),
    DiagnosisKind.SERVER_UNREACHABLE: (
        "Server unavailable",
        "The server is currently unreachable. Please try again later.",
        (
            "The server may be down for maintenance",
            "Check the VPN connection if one is required",
            "Contact the server administrator",
        ),
    ),
    DiagnosisKind.AUTH_EXPIRED: (
        "Authentication error",
        "Your session has expired. Please sign in again.",
        (
            "Sign in again",
            "Check your credentials",
            "Contact support if the problem persists",
        ),
    ),
    DiagnosisKind.UNKNOWN: (
        "Unknown connection error",
        "An unexpected error occurred.",
        ("Please contact support for further help.",),
    ),
}


def diagnosis_for(kind: DiagnosisKind, detail: Optional[str] = None) -> Diagnosis:
    """Build the user-facing :class:`Diagnosis` for *kind*.

    Args:
        kind: The failure class.
        detail: Replaces the stock detail sentence when given.
    """
    if kind is DiagnosisKind.NONE:
        return Diagnosis.healthy()
    message, stock_detail, hints = _DIAGNOSIS_TEXT[kind]
    return Diagnosis(kind=kind, message=message, detail=detail or stock_detail, hints=hints)


# ------------------------------------------------------------------ #
# Socket-level probe primitives
# ------------------------------------------------------------------ #


def resolve_host(host: str, timeout: float) -> None:
    """Resolve *host* via the system resolver, giving up after *timeout* seconds.

    :func:`socket.getaddrinfo` has no timeout of its own, so every lookup
    runs on its own daemon thread and the caller stops waiting when the
    timeout elapses. A lookup that hangs keeps only its own thread until
    the system resolver gives up; it never delays later lookups.
    """
    future: Future[list] = Future()

    def _lookup() -> None:
        try:
            future.set_result(socket.getaddrinfo(host, None))
        except BaseException as exc:
            future.set_exception(exc)

    threading.Thread(target=_lookup, name=f"dashlink-dns-{host}", daemon=True).start()
    try:
        addresses = future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        raise TimeoutError(f"Resolving {host} timed out after {timeout}s") from exc
    if not addresses:
        raise socket.gaierror(f"No addresses found for {host}")


def tcp_connect(host: str, port: int, timeout: float) -> None:
    """Open and immediately close a TCP connection to ``host:port``."""
    with socket.create_connection((host, port), timeout=timeout):
        pass


# ------------------------------------------------------------------ #
# Diagnostician
# ------------------------------------------------------------------ #


class ConnectivityDiagnostician:
    """Runs the ordered four-probe cascade and classifies the result.

    Args:
        config: Effective configuration. ``base_url`` must be set.
        transport: Optional :mod:`httpx` transport for the health and auth
            probes. Tests pass an :class:`httpx.MockTransport`.
        resolver: Hostname resolution primitive (defaults to
            :func:`resolve_host`).
        connector: TCP reachability primitive (defaults to
            :func:`tcp_connect`).

    Raises:
        ConfigError: If no ``base_url`` is configured.

    Example::

        diagnostician = ConnectivityDiagnostician(config)
        diagnosis = diagnostician.diagnose()
        if not diagnosis.ok:
            print(diagnosis.message, diagnosis.detail)
    """

    def __init__(
        self,
        config: GlobalConfig,
        transport: Optional[httpx.BaseTransport] = None,
        resolver: Resolver = resolve_host,
        connector: Connector = tcp_connect,
    ) -> None:
        self._config = config
        self._base_url = require_base_url(config)
        self._transport = transport
        self._resolver = resolver
        self._connector = connector
        self._guard = threading.Lock()
        self._inflight: Optional[Future[Diagnosis]] = None
        self._last_results: list[ProbeResult] = []

    @property
    def last_results(self) -> list[ProbeResult]:
        """Per-probe results of the most recently completed cascade."""
        return list(self._last_results)

    def diagnose(self) -> Diagnosis:
        """Run the cascade and return its :class:`Diagnosis`.

        Never raises for network conditions: recognised probe failures map
        to their kind and anything unexpected collapses to
        :attr:`DiagnosisKind.UNKNOWN`. If another thread is already running
        a cascade, this call waits for it and returns its result instead of
        starting a second one.
        """
        with self._guard:
            inflight = self._inflight
            owner = inflight is None
            if owner:
                inflight = self._inflight = Future()
        assert inflight is not None

        if not owner:
            logger.debug("Joining in-flight diagnosis")
            return inflight.result()

        try:
            diagnosis = self._run_cascade()
        except BaseException as exc:
            inflight.set_exception(exc)
            raise
        else:
            inflight.set_result(diagnosis)
            return diagnosis
        finally:
            with self._guard:
                self._inflight = None

    # ------------------------------------------------------------------ #
    # Cascade
    # ------------------------------------------------------------------ #

    def _run_cascade(self) -> Diagnosis:
        results: list[ProbeResult] = []
        probes: list[tuple[str, Callable[[], Optional[Diagnosis]]]] = [
            (PROBE_INTERNET, self._probe_internet),
            (PROBE_DNS, self._probe_dns),
            (PROBE_HEALTH, self._probe_health),
            (PROBE_AUTH, self._probe_auth),
        ]
        try:
            for name, probe in probes:
                started = time.monotonic()
                failure = probe()
                elapsed_ms = (time.monotonic() - started) * 1000
                results.append(
                    ProbeResult(probe=name, ok=failure is None, diagnosis=failure, elapsed_ms=elapsed_ms)
                )
                if failure is not None:
                    logger.warning("Probe %s failed: %s", name, failure.detail)
                    return failure
                logger.debug("Probe %s passed in %.0f ms", name, elapsed_ms)
            return Diagnosis.healthy()
        except Exception:
            logger.exception("Connection diagnosis failed")
            return diagnosis_for(DiagnosisKind.UNKNOWN)
        finally:
            self._last_results = results

    def _probe_internet(self) -> Optional[Diagnosis]:
        probes = self._config.probes
        try:
            self._connector(probes.internet_host, probes.internet_port, probes.timeout)
        except OSError as exc:
            logger.debug("Internet anchor %s unreachable: %s", probes.internet_host, exc)
            return diagnosis_for(DiagnosisKind.NO_INTERNET)
        return None

    def _probe_dns(self) -> Optional[Diagnosis]:
        host = self._config.hostname or ""
        try:
            self._resolver(host, self._config.probes.timeout)
        except OSError as exc:
            logger.debug("Resolving %s failed: %s", host, exc)
            return diagnosis_for(
                DiagnosisKind.DNS_RESOLUTION,
                f'The server "{host}" could not be resolved.',
            )
        return None

    def _probe_health(self) -> Optional[Diagnosis]:
        path = self._config.probes.health_path
        try:
            with self._http_client() as client:
                response = client.get(path)
        except httpx.HTTPError as exc:
            return diagnosis_for(
                DiagnosisKind.SERVER_UNREACHABLE,
                f"The server is currently unreachable ({type(exc).__name__}). "
                "Please try again later.",
            )
        if not response.is_success:
            return diagnosis_for(
                DiagnosisKind.SERVER_UNREACHABLE,
                f"The server health check returned HTTP {response.status_code}. "
                "Please try again later.",
            )
        return None

    def _probe_auth(self) -> Optional[Diagnosis]:
        try:
            headers = auth_headers(self._config)
        except ConfigError as exc:
            return diagnosis_for(
                DiagnosisKind.AUTH_EXPIRED,
                f"No session credential is available ({exc}). Please sign in again.",
            )
        try:
            with self._http_client() as client:
                response = client.get(self._config.probes.auth_check_path, headers=headers)
        except httpx.HTTPError as exc:
            logger.debug("Auth check failed without a status, ignoring: %s", exc)
            return None
        if response.status_code in (401, 403):
            return diagnosis_for(DiagnosisKind.AUTH_EXPIRED)
        return None

    def _http_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._base_url,
            timeout=self._config.probes.timeout,
            verify=self._config.request.verify_ssl,
            transport=self._transport,
        )
