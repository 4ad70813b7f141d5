"""Disk-based TTL cache for backend responses.

Uses :mod:`diskcache` to persist values across process restarts. Every value
is wrapped in a :class:`~dashlink.models.CacheEntry` that records when it was
stored and when it expires. Expiry is enforced by this module rather than by
diskcache so that:

* a ``get`` that observes an expired entry removes it from the store before
  reporting a miss (lazy eviction), and
* :meth:`ResponseCache.sweep_expired` can report exactly how many entries it
  evicted.

The cache never lets a storage problem reach the caller. Faults are logged
on the ``dashlink.cache`` logger, counted in :meth:`ResponseCache.stats`, and
degrade the call to a miss or a no-op.

See Also:
    :class:`~dashlink.models.CacheConfig` -- ``enabled`` flag and the TTL
    table used when :meth:`ResponseCache.set` is called without a TTL.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Optional

import diskcache
from pydantic import ValidationError

from dashlink.exceptions import CacheFault
from dashlink.models import CacheConfig, CacheEntry

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (CacheFault, OSError, sqlite3.Error, diskcache.Timeout)

DASHBOARD_KEY_PREFIX = "dashboard"
PLUGIN_KEY_PREFIX = "plugin-"


class ResponseCache:
    """Disk-backed key/value cache with per-entry expiry.

    Keys are caller-chosen strings such as ``"dashboard-data"`` or
    ``"plugin-42"``. Values are any picklable object; in practice the
    decoded JSON bodies returned by
    :meth:`~dashlink.client.fetcher.ResilientFetcher.fetch_json`.

    Reads and writes for the same key are serialised by a per-key lock, so
    the check-then-evict sequence in :meth:`get` cannot race with a
    concurrent :meth:`set` of a fresh value. Unrelated keys never wait on
    each other.

    Args:
        cache_dir: Root directory for the cache. A ``responses/``
            subdirectory is created inside it.
        config: Cache configuration (``enabled`` flag and TTL table).
        clock: Returns the current time as POSIX seconds. Tests inject a
            fake clock to step over expiry boundaries.

    Example::

        from dashlink.cache import ResponseCache
        from dashlink.models import CacheConfig

        cache = ResponseCache("/tmp/dashlink-cache", CacheConfig())
        cache.set("dashboard-data", {"servers": 12})   # 5 minute TTL
        cache.get("dashboard-data")
    """

    def __init__(
        self,
        cache_dir: str | Path,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._clock = clock
        self._cache_dir = Path(cache_dir)
        self._cache: Optional[diskcache.Cache] = None
        self._faults = 0
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()
        if config.enabled:
            try:
                self._cache = diskcache.Cache(str(self._cache_dir / "responses"))
            except _STORAGE_ERRORS as exc:
                self._record_fault("open", None, exc)

    def __enter__(self) -> ResponseCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def ttl_for(self, key: str) -> int:
        """Return the default TTL in seconds for *key*, based on its prefix."""
        if key.startswith(DASHBOARD_KEY_PREFIX):
            return self._config.dashboard_ttl_seconds
        if key.startswith(PLUGIN_KEY_PREFIX):
            return self._config.plugin_ttl_seconds
        return self._config.default_ttl_seconds

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store *value* under *key*, replacing any existing entry.

        Args:
            key: Cache key.
            value: Any picklable value.
            ttl: Lifetime in seconds. ``None`` picks the default for the
                key's class (see :meth:`ttl_for`). Negative values are
                treated as zero, which stores an entry that is already stale.

        Returns:
            ``True`` if the entry was written, ``False`` if caching is
            disabled or the store failed.
        """
        if self._cache is None:
            return False
        if ttl is None:
            ttl = self.ttl_for(key)
        ttl = max(0.0, float(ttl))

        now = self._clock()
        entry = CacheEntry(value=value, stored_at=now, expires_at=now + ttl, stale=ttl == 0)
        with self._key_lock(key):
            try:
                self._cache.set(key, entry.model_dump())
            except _STORAGE_ERRORS as exc:
                self._record_fault("set", key, exc)
                return False
        logger.debug("Cache set for key %s (ttl %ss)", key, ttl)
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* on a miss.

        An entry whose expiry has passed is deleted from the store before
        the miss is reported. A missing key is a normal outcome and never
        raises.
        """
        if self._cache is None:
            return default
        with self._key_lock(key):
            try:
                entry = self._read_entry(key)
                if entry is None:
                    return default
                if entry.is_expired(self._clock()):
                    self._cache.delete(key)
                    logger.debug("Cache entry %s expired and was evicted", key)
                    return default
                return entry.value
            except _STORAGE_ERRORS as exc:
                self._record_fault("get", key, exc)
                return default

    def contains(self, key: str) -> bool:
        """Report whether the store physically holds *key*, ignoring expiry."""
        if self._cache is None:
            return False
        try:
            return key in self._cache
        except _STORAGE_ERRORS as exc:
            self._record_fault("contains", key, exc)
            return False

    def invalidate(self, key: str) -> bool:
        """Remove a single entry. Returns ``True`` if something was deleted."""
        if self._cache is None:
            return False
        with self._key_lock(key):
            try:
                return bool(self._cache.delete(key))
            except _STORAGE_ERRORS as exc:
                self._record_fault("invalidate", key, exc)
                return False

    def clear(self) -> bool:
        """Remove every entry. Returns ``False`` if the store failed."""
        if self._cache is None:
            return False
        try:
            self._cache.clear()
        except _STORAGE_ERRORS as exc:
            self._record_fault("clear", None, exc)
            return False
        logger.info("Cache cleared")
        return True

    def sweep_expired(self) -> int:
        """Evict every expired entry and return how many were removed.

        Safe to call from a timer. Entries that cannot be decoded are
        removed as well and counted.
        """
        if self._cache is None:
            return 0
        removed = 0
        try:
            keys = list(self._cache)
        except _STORAGE_ERRORS as exc:
            self._record_fault("sweep", None, exc)
            return 0

        now = self._clock()
        for key in keys:
            with self._key_lock(key):
                try:
                    try:
                        entry = self._read_entry(key)
                    except CacheFault:
                        entry = None
                        self._cache.delete(key)
                        removed += 1
                    if entry is not None and entry.is_expired(now):
                        if self._cache.delete(key):
                            removed += 1
                except _STORAGE_ERRORS as exc:
                    self._record_fault("sweep", key, exc)
        if removed:
            logger.info("Swept %d expired cache entries", removed)
        return removed

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool) and ``faults`` (int), and
            when the store is open: ``size``, ``directory`` and the TTL
            table.
        """
        if self._cache is None:
            return {"enabled": False, "faults": self._faults}
        try:
            size = len(self._cache)
        except _STORAGE_ERRORS as exc:
            self._record_fault("stats", None, exc)
            size = 0
        return {
            "enabled": True,
            "size": size,
            "directory": str(self._cache_dir / "responses"),
            "default_ttl_seconds": self._config.default_ttl_seconds,
            "dashboard_ttl_seconds": self._config.dashboard_ttl_seconds,
            "plugin_ttl_seconds": self._config.plugin_ttl_seconds,
            "faults": self._faults,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _key_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[key]

    def _read_entry(self, key: str) -> Optional[CacheEntry]:
        assert self._cache is not None
        raw = self._cache.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError as exc:
            raise CacheFault(f"Malformed cache entry for {key!r}: {exc}") from exc

    def _record_fault(self, operation: str, key: Optional[str], exc: BaseException) -> None:
        with self._locks_guard:
            self._faults += 1
        target = f" for key {key}" if key is not None else ""
        logger.error("Cache %s failed%s: %s", operation, target, exc)
