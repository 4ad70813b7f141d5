"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific failure class and is referenced by the
corresponding :class:`~dashlink.exceptions.DashlinkError` subclass or by
:data:`~dashlink.exceptions.DIAGNOSIS_EXIT_CODES`. Shell wrappers and
monitoring scripts can branch on the exit code of ``dashlink check``
without parsing stderr.

Example::

    $ dashlink check
    $ echo $?
    6   # EXIT_NO_INTERNET -- the machine itself is offline
"""

EXIT_SUCCESS = 0
"""The command completed successfully (or no connectivity problem was found)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, including an ``UNKNOWN`` diagnosis."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration values."""

EXIT_AUTH_EXPIRED = 3
"""The backend rejected the session (HTTP 401 / 403 on the auth check)."""

EXIT_SERVER_UNREACHABLE = 5
"""The backend host resolved but its health endpoint did not answer with 2xx."""

EXIT_NO_INTERNET = 6
"""The internet anchor could not be reached -- the machine is offline."""

EXIT_DNS_RESOLUTION = 7
"""The backend hostname could not be resolved."""
