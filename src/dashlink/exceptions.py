"""Exception hierarchy for dashlink.

All exceptions inherit from :class:`DashlinkError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`dashlink.exit_codes`.
The top-level error handler in :func:`dashlink.app.main` catches
``DashlinkError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    DashlinkError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- ConfigError          (exit 1)
    +-- CacheFault           (exit 1, absorbed inside the cache)
    +-- FetchError           (exit code of its diagnosis)
    +-- ConnectionAbandoned  (exit code of its diagnosis)
"""

from __future__ import annotations

from typing import Optional

from dashlink.exit_codes import (
    EXIT_AUTH_EXPIRED,
    EXIT_DNS_RESOLUTION,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_INTERNET,
    EXIT_SERVER_UNREACHABLE,
    EXIT_SUCCESS,
)
from dashlink.models import Diagnosis, DiagnosisKind


DIAGNOSIS_EXIT_CODES: dict[DiagnosisKind, int] = {
    DiagnosisKind.NONE: EXIT_SUCCESS,
    DiagnosisKind.NO_INTERNET: EXIT_NO_INTERNET,
    DiagnosisKind.DNS_RESOLUTION: EXIT_DNS_RESOLUTION,
    DiagnosisKind.SERVER_UNREACHABLE: EXIT_SERVER_UNREACHABLE,
    DiagnosisKind.AUTH_EXPIRED: EXIT_AUTH_EXPIRED,
    DiagnosisKind.UNKNOWN: EXIT_GENERIC_FAILURE,
}
"""Process exit code for each :class:`~dashlink.models.DiagnosisKind`."""


def exit_code_for(diagnosis: Diagnosis) -> int:
    """Return the process exit code that reports *diagnosis*."""
    return DIAGNOSIS_EXIT_CODES.get(diagnosis.kind, EXIT_GENERIC_FAILURE)


class DashlinkError(Exception):
    """Base exception for all dashlink errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`dashlink.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(DashlinkError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(DashlinkError):
    """Raised for configuration problems (missing base URL, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheFault(DashlinkError):
    """Raised inside the cache when the storage layer misbehaves.

    Never propagates out of :class:`~dashlink.cache.ResponseCache`; public
    cache methods catch it, log it, and degrade to a miss or a no-op.
    """


class FetchError(DashlinkError):
    """A failed backend request together with the diagnosis of why it failed.

    Attributes:
        cause: The original transport exception, or ``None`` when the
            request completed with a non-2xx status or an unreadable body.
        diagnosis: Result of the connectivity cascade run at failure time.
        status_code: HTTP status of the failed response, when there was one.
    """

    def __init__(
        self,
        message: str,
        diagnosis: Diagnosis,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, exit_code=exit_code_for(diagnosis))
        self.diagnosis = diagnosis
        self.cause = cause
        self.status_code = status_code


class ConnectionAbandoned(DashlinkError):
    """Raised when the user chooses to quit instead of retrying the connection.

    Attributes:
        diagnosis: The diagnosis that was on screen when the user quit.
    """

    def __init__(self, diagnosis: Diagnosis):
        super().__init__(
            f"{diagnosis.message}: {diagnosis.detail}".strip(": "),
            exit_code=exit_code_for(diagnosis),
        )
        self.diagnosis = diagnosis
