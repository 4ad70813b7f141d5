"""Disk-based TTL caching for dashlink.

This package provides :class:`ResponseCache`, a key/value store that keeps
decoded backend responses on disk using :mod:`diskcache`, each with its own
expiry. Callers pick the keys (``"dashboard-data"``, ``"plugin-<id>"``);
the TTL defaults come from the ``cache`` section of the configuration
(:class:`~dashlink.models.CacheConfig`).

The cache is consumed by :mod:`dashlink.data` and by the ``dashlink cache``
CLI commands. It holds no reference to any network component.
"""

from dashlink.cache.cache import ResponseCache

__all__ = ["ResponseCache"]
