"""
Tests for RedisCache

Uses a mocked redis client; no Redis server is required.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis

from onu_map.cache.redis_cache import RedisCache
from onu_map.cache.store import create_cache_store
from onu_map.cache.memory_cache import MemoryCache
from onu_map.utils.config import CacheConfig


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def cache(client):
    return RedisCache("redis://localhost:6379/0", default_ttl=60, client=client)


class TestRedisCache:
    """Tests for RedisCache with a mocked client."""

    def test_init_pings_server(self, client, cache):
        client.ping.assert_called_once()

    def test_init_raises_connection_error(self, client):
        client.ping.side_effect = redis.ConnectionError("refused")

        with pytest.raises(ConnectionError):
            RedisCache("redis://localhost:6379/0", client=client)

    def test_set_uses_prefix_ttl_and_json(self, client, cache):
        assert cache.set("all_onus:all", [{"unique_external_id": "A1"}], 3600)

        client.setex.assert_called_once_with(
            "onumap:all_onus:all",
            3600,
            json.dumps([{"unique_external_id": "A1"}])
        )

    def test_set_falls_back_to_default_ttl(self, client, cache):
        cache.set("key", 1)
        assert client.setex.call_args[0][1] == 60

    def test_zero_ttl_deletes_instead_of_storing(self, client, cache):
        assert cache.set("key", 1, 0) is False

        client.setex.assert_not_called()
        client.delete.assert_called_once_with("onumap:key")

    def test_get_deserializes(self, client, cache):
        client.get.return_value = json.dumps({"status": "LOS"})

        assert cache.get("status:A1") == {"status": "LOS"}
        client.get.assert_called_once_with("onumap:status:A1")

    def test_get_miss(self, client, cache):
        client.get.return_value = None
        assert cache.get("missing") is None

    def test_get_swallows_redis_errors(self, client, cache):
        client.get.side_effect = redis.ConnectionError("gone")
        assert cache.get("key") is None

    def test_set_swallows_redis_errors(self, client, cache):
        client.setex.side_effect = redis.ConnectionError("gone")
        assert cache.set("key", 1) is False

    def test_flush_deletes_prefixed_keys(self, client, cache):
        client.scan_iter.return_value = iter(["onumap:a", "onumap:b"])

        assert cache.flush()
        client.delete.assert_called_once_with("onumap:a", "onumap:b")

    def test_safe_url_masks_password(self, client):
        cache = RedisCache("redis://:secret@cache.local:6379/0", client=client)
        assert "secret" not in cache._safe_url()


class TestCreateCacheStore:
    """Tests for backend selection."""

    def test_memory_cache_without_redis_url(self):
        store = create_cache_store(CacheConfig())
        assert isinstance(store, MemoryCache)

    def test_falls_back_to_memory_when_redis_unreachable(self, monkeypatch):
        broken = MagicMock()
        broken.ping.side_effect = redis.ConnectionError("refused")
        monkeypatch.setattr(redis, "from_url", lambda *args, **kwargs: broken)

        store = create_cache_store(CacheConfig(redis_url="redis://localhost:6379/0"))
        assert isinstance(store, MemoryCache)
