"""
OnuStatusMap - Redis Cache Backend

Optional networked result cache with the same interface as MemoryCache.
Values are stored as JSON under the "onumap:" prefix with SETEX, so a
read after the TTL behaves like a missing key.

Note: redis-py's type stubs use a generic ResponseT that supports both sync
and async interfaces. We use the synchronous interface only.
"""

import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Redis cache manager for SmartOLT results.

    Every operation swallows Redis errors: reads report a miss and writes
    report False, so a Redis outage degrades to uncached upstream calls.
    """

    KEY_PREFIX = "onumap"

    # Used when set() is called without a TTL
    DEFAULT_TTL = 60

    def __init__(self, redis_url: str, default_ttl: Optional[int] = None, client: Any = None):
        """
        Initialize Redis connection.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            default_ttl: TTL in seconds when set() gets none
            client: Pre-built client (tests)

        Raises:
            ConnectionError: If cannot connect to Redis
        """
        self.redis_url = redis_url
        self.default_ttl = default_ttl or self.DEFAULT_TTL
        self.client: Any = client or redis.from_url(redis_url, decode_responses=True)

        try:
            self.client.ping()
            logger.info(f"[OK] Connected to Redis at {self._safe_url()}")
        except redis.ConnectionError as error:
            logger.error(f"[ERROR] Failed to connect to Redis: {error}")
            raise ConnectionError(f"Cannot connect to Redis: {error}")

    def _safe_url(self) -> str:
        """Return URL with password masked for logging."""
        if "@" in self.redis_url:
            parts = self.redis_url.split("@")
            return f"***@{parts[-1]}"
        return self.redis_url

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    def _serialize(self, data: Any) -> str:
        """Serialize data to JSON string."""
        return json.dumps(data, default=str)

    def _deserialize(self, data: Optional[str]) -> Any:
        """Deserialize JSON string to Python object."""
        if data is None:
            return None
        return json.loads(data)

    def is_connected(self) -> bool:
        """Check if Redis connection is alive."""
        try:
            self.client.ping()
            return True
        except Exception:
            return False

    def get(self, key: str) -> Optional[Any]:
        """Get a value; None on miss, expiry or Redis error."""
        try:
            value = self._deserialize(self.client.get(self._key(key)))
            logger.debug(f"Cache {'hit' if value is not None else 'miss'} for key: {key}")
            return value
        except Exception as error:
            logger.error(f"Cache get error for key {key}: {error}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-serializable value with expiry; a TTL of zero or less drops the key."""
        actual_ttl = self.default_ttl if ttl is None else ttl
        if actual_ttl <= 0:
            self.delete(key)
            return False
        try:
            self.client.setex(self._key(key), actual_ttl, self._serialize(value))
            logger.debug(f"Cache set for key: {key}, TTL: {actual_ttl}s")
            return True
        except Exception as error:
            logger.error(f"Cache set error for key {key}: {error}")
            return False

    def delete(self, key: str) -> bool:
        try:
            self.client.delete(self._key(key))
            return True
        except Exception as error:
            logger.error(f"Cache delete error for key {key}: {error}")
            return False

    def flush(self) -> bool:
        """
        Clear all onumap cache keys.

        Returns:
            True if successful
        """
        try:
            keys = list(self.client.scan_iter(match=f"{self.KEY_PREFIX}:*"))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[OK] Cleared {len(keys)} cache keys")
            return True
        except Exception as error:
            logger.error(f"Error clearing cache: {error}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Connection state and key count under the prefix."""
        try:
            keys = sum(1 for _ in self.client.scan_iter(match=f"{self.KEY_PREFIX}:*"))
            return {
                "backend": "redis",
                "connected": self.is_connected(),
                "keys": keys
            }
        except Exception as error:
            logger.error(f"Error getting cache stats: {error}")
            return {"backend": "redis", "connected": False, "error": str(error)}
