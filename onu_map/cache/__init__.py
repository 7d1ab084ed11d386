"""
OnuStatusMap - Cache Module

Provides the TTL result cache that absorbs repeated queries so the
hourly SmartOLT quotas are not spent twice on the same data.
"""

from onu_map.cache.memory_cache import MemoryCache
from onu_map.cache.redis_cache import RedisCache
from onu_map.cache.store import CacheStore, create_cache_store

__all__ = [
    "CacheStore",
    "MemoryCache",
    "RedisCache",
    "create_cache_store",
]
