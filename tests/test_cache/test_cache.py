"""Tests for the ResponseCache module."""

from __future__ import annotations

import pytest

from dashlink.cache import ResponseCache
from dashlink.models import CacheConfig


@pytest.fixture()
def cache(tmp_path, fake_clock):
    """Create a ResponseCache with default config and a controllable clock."""
    c = ResponseCache(tmp_path, CacheConfig(), clock=fake_clock)
    yield c
    c.close()


@pytest.fixture()
def disabled_cache(tmp_path):
    c = ResponseCache(tmp_path, CacheConfig(enabled=False))
    yield c
    c.close()


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, cache: ResponseCache) -> None:
        assert cache.set("dashboard-data", {"servers": 12}, ttl=60) is True
        assert cache.get("dashboard-data") == {"servers": 12}

    def test_cache_miss_returns_none(self, cache: ResponseCache) -> None:
        assert cache.get("never-stored") is None

    def test_cache_miss_returns_default(self, cache: ResponseCache) -> None:
        sentinel = object()
        assert cache.get("never-stored", sentinel) is sentinel

    def test_falsy_values_are_hits(self, cache: ResponseCache) -> None:
        """An empty list is a cached value, not a miss."""
        cache.set("plugin-empty", [], ttl=60)
        assert cache.get("plugin-empty", "miss") == []

    def test_set_replaces_existing_entry(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("k", "old", ttl=10)
        fake_clock.now += 5
        cache.set("k", "new", ttl=10)
        fake_clock.now += 8
        assert cache.get("k") == "new"

    def test_value_survives_reopen(self, tmp_path, fake_clock) -> None:
        with ResponseCache(tmp_path, CacheConfig(), clock=fake_clock) as first:
            first.set("k", {"a": 1}, ttl=60)
        with ResponseCache(tmp_path, CacheConfig(), clock=fake_clock) as second:
            assert second.get("k") == {"a": 1}


# ------------------------------------------------------------------ #
# Expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_fresh_until_ttl_elapses(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("k", 1, ttl=60)
        fake_clock.now += 60
        assert cache.get("k") == 1
        fake_clock.now += 0.5
        assert cache.get("k") is None

    def test_zero_ttl_is_immediately_stale(self, cache: ResponseCache) -> None:
        cache.set("k", 1, ttl=0)
        assert cache.get("k") is None

    def test_negative_ttl_is_immediately_stale(self, cache: ResponseCache) -> None:
        cache.set("k", 1, ttl=-30)
        assert cache.get("k") is None

    def test_tiny_positive_ttl_is_fresh_on_read(self, cache: ResponseCache, fake_clock) -> None:
        """A TTL below the clock's float resolution still yields a hit."""
        fake_clock.now = 1_700_000_000.0
        assert cache.set("k", "v", ttl=1e-9) is True
        assert cache.get("k") == "v"

    def test_expired_get_evicts_entry(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("k", 1, ttl=10)
        fake_clock.now += 11
        assert cache.contains("k") is True
        assert cache.get("k") is None
        assert cache.contains("k") is False

    def test_sweep_counts_only_expired(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("short-1", 1, ttl=5)
        cache.set("short-2", 2, ttl=5)
        cache.set("long", 3, ttl=500)
        fake_clock.now += 10

        assert cache.sweep_expired() == 2
        assert cache.contains("short-1") is False
        assert cache.get("long") == 3
        assert cache.sweep_expired() == 0

    def test_sweep_removes_malformed_entries(self, cache: ResponseCache) -> None:
        cache._cache.set("garbage", "not an entry")
        assert cache.sweep_expired() == 1
        assert cache.contains("garbage") is False


# ------------------------------------------------------------------ #
# Default TTL by key class
# ------------------------------------------------------------------ #


class TestDefaultTtl:
    def test_ttl_for_key_classes(self, cache: ResponseCache) -> None:
        assert cache.ttl_for("dashboard-data") == 300
        assert cache.ttl_for("plugin-weather") == 1800
        assert cache.ttl_for("anything-else") == 3600

    def test_dashboard_default_ttl_applies(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("dashboard-data", {"x": 1})
        fake_clock.now += 299
        assert cache.get("dashboard-data") == {"x": 1}
        fake_clock.now += 2
        assert cache.get("dashboard-data") is None

    def test_plugin_default_ttl_applies(self, cache: ResponseCache, fake_clock) -> None:
        cache.set("plugin-7", "p")
        fake_clock.now += 1799
        assert cache.get("plugin-7") == "p"
        fake_clock.now += 2
        assert cache.get("plugin-7") is None


# ------------------------------------------------------------------ #
# Clear and invalidate
# ------------------------------------------------------------------ #


class TestClear:
    def test_clear_removes_everything(self, cache: ResponseCache) -> None:
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)
        assert cache.clear() is True
        assert cache.get("a") is None
        assert cache.get("b") is None
        assert cache.stats()["size"] == 0

    def test_invalidate_single_key(self, cache: ResponseCache) -> None:
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert cache.get("b") == 2


# ------------------------------------------------------------------ #
# Disabled cache and fault absorption
# ------------------------------------------------------------------ #


class TestDisabledCache:
    def test_disabled_never_stores(self, disabled_cache: ResponseCache) -> None:
        assert disabled_cache.set("k", 1, ttl=60) is False
        assert disabled_cache.get("k") is None
        assert disabled_cache.clear() is False
        assert disabled_cache.sweep_expired() == 0

    def test_disabled_stats(self, disabled_cache: ResponseCache) -> None:
        assert disabled_cache.stats() == {"enabled": False, "faults": 0}


class _BrokenStore:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise OSError("disk full")

        return fail

    def __contains__(self, key):
        raise OSError("disk full")

    def __iter__(self):
        raise OSError("disk full")

    def __len__(self):
        raise OSError("disk full")


class TestFaults:
    def test_storage_errors_degrade_to_miss(self, cache: ResponseCache, caplog) -> None:
        real_store = cache._cache
        cache._cache = _BrokenStore()
        try:
            assert cache.set("k", 1, ttl=60) is False
            assert cache.get("k", "miss") == "miss"
            assert cache.contains("k") is False
            assert cache.clear() is False
            assert cache.sweep_expired() == 0
        finally:
            cache._cache = real_store

        assert cache.stats()["faults"] == 5
        assert "disk full" in caplog.text

    def test_malformed_entry_is_a_miss(self, cache: ResponseCache) -> None:
        cache._cache.set("k", {"value": 1, "stored_at": 10.0, "expires_at": 5.0})
        assert cache.get("k") is None
        assert cache.stats()["faults"] == 1
