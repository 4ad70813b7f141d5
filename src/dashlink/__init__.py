"""dashlink -- connectivity diagnosis and response caching for the dashboard backend.

This package is the network core of the desktop dashboard client. It tells
the rest of the application *why* the backend cannot be reached, and keeps
recently fetched dashboard and plugin data on disk so that callers are not
forced into a round-trip while the data is still fresh.

Typical workflow::

    dashlink config set base_url https://dashboard.example.com
    dashlink check                    # run the diagnosis cascade once
    dashlink dashboard                # fetch (or serve cached) dashboard data
    dashlink watch                    # interactive startup check + periodic ticks

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic config models and diagnosis / cache value types.
    config: XDG-aware configuration loading and credential resolution.
    cache: Disk-backed TTL cache.
    diagnostics: The four-probe connectivity cascade.
    client: HTTP fetcher that attaches a diagnosis to every failure.
    supervisor: Periodic re-probing and the interactive retry loop.
    data: Read-through cached access to dashboard and plugin data.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
