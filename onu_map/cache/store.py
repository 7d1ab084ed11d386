"""
OnuStatusMap - Cache Store Interface

The ONU service only depends on this interface, so the in-memory store
can be swapped for Redis without touching the service.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from onu_map.cache.memory_cache import MemoryCache
from onu_map.cache.redis_cache import RedisCache
from onu_map.utils.config import CacheConfig

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Key/value store with per-entry TTL. get() never raises."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def flush(self) -> bool:
        ...

    def get_stats(self) -> Dict[str, Any]:
        ...


def create_cache_store(config: CacheConfig) -> CacheStore:
    """
    Build the configured cache backend.

    Redis is used when REDIS_URL is set and reachable; otherwise the
    in-memory store.
    """
    if config.redis_url:
        try:
            return RedisCache(config.redis_url, default_ttl=config.onu_status_ttl)
        except ConnectionError as error:
            logger.warning(f"[WARN] Redis unavailable, using in-memory cache: {error}")
    return MemoryCache(default_ttl=config.onu_status_ttl)
