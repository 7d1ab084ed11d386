"""
Tests for MemoryCache

Expiry is driven by a fake monotonic clock.
"""

import pytest

from onu_map.cache.memory_cache import MemoryCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCache(default_ttl=60, check_period=120, clock=clock)


class TestMemoryCache:
    """Tests for MemoryCache get/set/expiry."""

    def test_get_missing_key_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_set_then_get(self, cache):
        assert cache.set("all_onus:all", [{"unique_external_id": "A1"}], 3600)
        assert cache.get("all_onus:all") == [{"unique_external_id": "A1"}]

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.set("onu_detail:A1", {"status": "Online"}, 60)

        clock.now += 59
        assert cache.get("onu_detail:A1") == {"status": "Online"}

        clock.now += 1
        assert cache.get("onu_detail:A1") is None

    def test_default_ttl_used_when_none_given(self, cache, clock):
        cache.set("key", "value")

        clock.now += 61
        assert cache.get("key") is None

    def test_zero_ttl_is_not_stored(self, cache, clock):
        cache.set("key", "old", 60)

        assert cache.set("key", "new", 0) is False
        clock.now += 1
        assert cache.get("key") is None

    def test_overwrite_resets_value_and_ttl(self, cache, clock):
        cache.set("key", "old", 10)
        clock.now += 5
        cache.set("key", "new", 10)
        clock.now += 8

        assert cache.get("key") == "new"

    def test_per_entry_ttls_are_independent(self, cache, clock):
        cache.set("short", 1, 10)
        cache.set("long", 2, 3600)

        clock.now += 11
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_delete_and_flush(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.flush()
        assert cache.get("b") is None

    def test_sweep_drops_untouched_expired_keys(self, cache, clock):
        cache.set("stale", 1, 10)
        clock.now += 200
        cache.set("fresh", 2, 10)

        assert "stale" not in cache._entries

    def test_stats_count_hits_and_misses(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")

        stats = cache.get_stats()
        assert stats == {"backend": "memory", "keys": 1, "hits": 1, "misses": 1}

    def test_stats_skip_expired_keys(self, cache, clock):
        cache.set("a", 1, 10)
        clock.now += 11

        assert cache.get_stats()["keys"] == 0

    def test_get_swallows_internal_errors(self, clock):
        def broken_clock():
            raise RuntimeError("clock failure")

        cache = MemoryCache(clock=clock)
        cache._clock = broken_clock

        assert cache.get("key") is None
        assert cache.set("key", 1) is False
