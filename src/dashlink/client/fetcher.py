"""Backend fetcher that attaches a connectivity diagnosis to every failure.

This module provides :class:`ResilientFetcher`, the blocking HTTP client
used for all dashboard data requests. It wraps :class:`httpx.Client` and
layers on:

- **Auth injection** -- the session credential from
  :func:`~dashlink.config.auth_headers` is sent with every request.
- **Connection reuse** -- one :class:`httpx.Client` (TLS-verified by
  default) lives for the duration of the ``with`` block.
- **Retry with backoff** -- optional retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...), off by default.
- **Diagnosed failures** -- a transport error, a non-2xx status, or an
  unreadable JSON body triggers
  :meth:`~dashlink.diagnostics.ConnectivityDiagnostician.diagnose` and is
  raised as :class:`~dashlink.exceptions.FetchError` with the diagnosis
  and the raw HTTP status attached.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from dashlink.config import auth_headers, require_base_url
from dashlink.diagnostics import ConnectivityDiagnostician, diagnosis_for
from dashlink.exceptions import ConfigError, FetchError
from dashlink.models import DiagnosisKind, GlobalConfig
from dashlink.output import get_output

logger = logging.getLogger(__name__)


class ResilientFetcher:
    """Synchronous client for the dashboard backend.

    Must be used as a context manager so that the underlying transport is
    opened once, reused for every request, and closed afterwards.

    Args:
        config: Effective configuration. ``base_url`` must be set.
        diagnostician: Cascade to run when a request fails. Defaults to a
            new :class:`ConnectivityDiagnostician` sharing *transport*.
        transport: Optional :mod:`httpx` transport, mainly for tests.

    Raises:
        ConfigError: If no ``base_url`` is configured.

    Example::

        with ResilientFetcher(config) as fetcher:
            try:
                data = fetcher.fetch_json("/api/v1/dashboard")
            except FetchError as exc:
                print(exc.diagnosis.message)
    """

    def __init__(
        self,
        config: GlobalConfig,
        diagnostician: Optional[ConnectivityDiagnostician] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._base_url = require_base_url(config)
        self._transport = transport
        self._diagnostician = diagnostician or ConnectivityDiagnostician(
            config, transport=transport
        )
        self._auth_headers: Optional[dict[str, str]] = None
        self._client: Optional[httpx.Client] = None

    @property
    def diagnostician(self) -> ConnectivityDiagnostician:
        return self._diagnostician

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ResilientFetcher:
        request = self._config.request
        self._auth_headers = None
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=request.timeout,
            verify=request.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def fetch(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send one request to ``base_url + endpoint``.

        Args:
            endpoint: Path starting with ``/``, e.g. ``/api/v1/dashboard``.
            method: HTTP method.
            params: Query parameters.
            headers: Extra request headers; they win over the auth header.
            json_body: JSON-serialisable request body.

        Returns:
            The 2xx :class:`httpx.Response`.

        Raises:
            FetchError: On a transport error, a non-2xx status, or a session
                credential that cannot be read, carrying the diagnosis run
                at failure time.
        """
        try:
            credential_headers = self._credential_headers()
        except ConfigError as exc:
            raise self._failure(f"{method.upper()} {endpoint} not sent: {exc}", cause=exc) from exc

        merged_headers: dict[str, str] = {"Accept": "application/json"}
        merged_headers.update(credential_headers)
        merged_headers.update(headers or {})

        try:
            response = self._execute_with_retry(
                method.upper(), endpoint, merged_headers, dict(params or {}), json_body
            )
        except httpx.HTTPError as exc:
            raise self._failure(f"{method.upper()} {endpoint} failed: {exc}", cause=exc) from exc

        if not response.is_success:
            raise self._failure(
                _status_message(response), status_code=response.status_code
            )
        return response

    def fetch_json(self, endpoint: str, **kwargs: Any) -> Any:
        """Like :meth:`fetch`, but return the decoded JSON body.

        Raises:
            FetchError: On any :meth:`fetch` failure, or when the body of a
                2xx response is not valid JSON.
        """
        response = self.fetch(endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise self._failure(
                f"Invalid JSON in response from {endpoint}: {exc}",
                cause=exc,
                status_code=response.status_code,
            ) from exc

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _credential_headers(self) -> dict[str, str]:
        """Resolve the auth header on first use and keep it for this session."""
        if self._auth_headers is None:
            self._auth_headers = auth_headers(self._config)
        return self._auth_headers

    def _execute_with_retry(
        self,
        method: str,
        endpoint: str,
        headers: dict[str, str],
        params: dict[str, Any],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the request, retrying 5xx and network errors with backoff.

        Retries ``request.max_retries`` times; the delay doubles each
        attempt: 1 s, 2 s, 4 s, ... The final 5xx response is returned
        as-is and the final network error re-raised.
        """
        assert self._client is not None, "Fetcher not initialised -- use as context manager"

        max_retries = self._config.request.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {
                    "method": method,
                    "url": endpoint,
                    "headers": headers,
                    "params": params,
                }
                if json_body is not None:
                    kwargs["json"] = json_body
                response = self._client.request(**kwargs)

                if response.status_code >= 500 and attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Server error {response.status_code}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue
                return response

            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt >= max_retries:
                    raise
                delay = 2 ** attempt
                output.debug(
                    f"Connection error: {exc}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    def _failure(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ) -> FetchError:
        """Diagnose the current failure and package it as a :class:`FetchError`.

        A cascade that finds nothing wrong cannot explain a failed request,
        so its ``NONE`` result is replaced by ``UNKNOWN`` naming the status.
        """
        diagnosis = self._diagnostician.diagnose()
        if diagnosis.ok and isinstance(cause, ConfigError):
            diagnosis = diagnosis_for(
                DiagnosisKind.AUTH_EXPIRED,
                f"No session credential is available ({cause}). Please sign in again.",
            )
        elif diagnosis.ok:
            if cause is not None:
                detail = f"The request failed although the backend looks healthy: {cause}"
            else:
                detail = f"The backend answered HTTP {status_code} although it looks healthy."
            diagnosis = diagnosis_for(DiagnosisKind.UNKNOWN, detail)
        logger.error("Fetch error: %s (diagnosis: %s)", message, diagnosis.kind.value)
        return FetchError(message, diagnosis=diagnosis, cause=cause, status_code=status_code)


def _status_message(response: httpx.Response) -> str:
    """Build ``HTTP <status>: <server message>`` from an error response."""
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {msg}" if msg else prefix
