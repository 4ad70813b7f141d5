"""Read-through cached access to dashboard and plugin data.

:class:`DataSource` is the thin layer the UI talks to. It checks the
:class:`~dashlink.cache.ResponseCache` first and only goes to the backend
through :class:`~dashlink.client.fetcher.ResilientFetcher` on a miss,
storing the fresh result under a per-class TTL (five minutes for dashboard
data, thirty for plugin data by default).

Fetch failures are not swallowed: the :class:`~dashlink.exceptions.FetchError`
and its diagnosis reach the caller so it can tell the user what is wrong.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from dashlink.cache import ResponseCache
from dashlink.client import ResilientFetcher
from dashlink.exceptions import InvalidUsageError

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_KEY = "dashboard-data"
DASHBOARD_ENDPOINT = "/api/v1/dashboard"
PLUGIN_ENDPOINT = "/api/v1/plugins/{plugin_id}"

_MISS = object()


def plugin_cache_key(plugin_id: str) -> str:
    return f"plugin-{plugin_id}"


class DataSource:
    """Cached accessors for the backend's dashboard and plugin endpoints.

    Args:
        fetcher: An entered :class:`ResilientFetcher`.
        cache: The shared response cache.
    """

    def __init__(self, fetcher: ResilientFetcher, cache: ResponseCache) -> None:
        self._fetcher = fetcher
        self._cache = cache

    def dashboard(self, refresh: bool = False) -> Any:
        """Return the dashboard payload, from cache when still fresh.

        Args:
            refresh: Skip the cache lookup and always hit the backend.

        Raises:
            FetchError: When the cache misses and the backend request fails.
        """
        return self._read_through(DASHBOARD_CACHE_KEY, DASHBOARD_ENDPOINT, refresh)

    def plugin(self, plugin_id: str, refresh: bool = False) -> Any:
        """Return the data of one plugin, from cache when still fresh.

        Raises:
            InvalidUsageError: If *plugin_id* is empty.
            FetchError: When the cache misses and the backend request fails.
        """
        plugin_id = plugin_id.strip()
        if not plugin_id:
            raise InvalidUsageError("Plugin id must not be empty")
        endpoint = PLUGIN_ENDPOINT.format(plugin_id=quote(plugin_id, safe=""))
        return self._read_through(plugin_cache_key(plugin_id), endpoint, refresh)

    def _read_through(self, key: str, endpoint: str, refresh: bool) -> Any:
        if not refresh:
            cached = self._cache.get(key, _MISS)
            if cached is not _MISS:
                logger.debug("Cache hit for %s", key)
                return cached

        data = self._fetcher.fetch_json(endpoint)
        self._cache.set(key, data)
        return data
