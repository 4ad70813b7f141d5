"""HTTP client module for dashlink.

Provides :class:`ResilientFetcher`, a blocking client for the dashboard
backend that wraps :mod:`httpx` with auth injection, optional retry with
exponential backoff, and a connectivity diagnosis attached to every failure
(:class:`~dashlink.exceptions.FetchError`).

Example::

    from dashlink.client import ResilientFetcher

    with ResilientFetcher(config) as fetcher:
        data = fetcher.fetch_json("/api/v1/dashboard")
"""

from dashlink.client.fetcher import ResilientFetcher

__all__ = ["ResilientFetcher"]
