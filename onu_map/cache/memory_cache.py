"""
OnuStatusMap - In-Memory TTL Cache

Default result cache. Lives for the lifetime of the process; every entry
carries its own expiry and a read after expiry behaves like a missing key.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class MemoryCache:
    """
    Thread-safe in-process key/value store with per-entry TTL.

    Expired entries are dropped lazily on read and in bulk every
    check_period seconds, so untouched keys do not accumulate.
    """

    # Used when set() is called without a TTL
    DEFAULT_TTL = 60

    def __init__(
        self,
        default_ttl: Optional[int] = None,
        check_period: int = 120,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds when set() gets none
            check_period: Seconds between bulk sweeps of expired entries
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.default_ttl = default_ttl or self.DEFAULT_TTL
        self.check_period = check_period
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._last_sweep = clock()
        self._hits = 0
        self._misses = 0

    def _sweep_if_due(self, now: float) -> None:
        """Drop all expired entries once per check period. Caller holds the lock."""
        if now - self._last_sweep < self.check_period:
            return
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired keys")

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value if present and unexpired.

        Returns:
            Stored value, or None on miss, expiry or internal error
        """
        try:
            with self._lock:
                now = self._clock()
                self._sweep_if_due(now)
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                    logger.debug(f"Cache miss for key: {key}")
                    return None
                value, expires_at = entry
                if expires_at <= now:
                    del self._entries[key]
                    self._misses += 1
                    logger.debug(f"Cache expired for key: {key}")
                    return None
                self._hits += 1
                logger.debug(f"Cache hit for key: {key}")
                return value
        except Exception as error:
            logger.error(f"Cache get error for key {key}: {error}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a value, overwriting any existing entry for the key.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time to live in seconds (default: default_ttl); zero or
                negative drops the key instead of storing

        Returns:
            True if stored
        """
        actual_ttl = self.default_ttl if ttl is None else ttl
        if actual_ttl <= 0:
            self.delete(key)
            return False
        try:
            with self._lock:
                now = self._clock()
                self._sweep_if_due(now)
                self._entries[key] = (value, now + actual_ttl)
            logger.debug(f"Cache set for key: {key}, TTL: {actual_ttl}s")
            return True
        except Exception as error:
            logger.error(f"Cache set error for key {key}: {error}")
            return False

    def delete(self, key: str) -> bool:
        """Remove a key if present."""
        try:
            with self._lock:
                self._entries.pop(key, None)
            logger.debug(f"Cache deleted for key: {key}")
            return True
        except Exception as error:
            logger.error(f"Cache delete error for key {key}: {error}")
            return False

    def flush(self) -> bool:
        """Remove every entry."""
        try:
            with self._lock:
                self._entries.clear()
            logger.info("[OK] Cache flushed")
            return True
        except Exception as error:
            logger.error(f"Cache flush error: {error}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Key count and hit/miss counters."""
        with self._lock:
            now = self._clock()
            live_keys = sum(1 for _, expires_at in self._entries.values() if expires_at > now)
            return {
                "backend": "memory",
                "keys": live_keys,
                "hits": self._hits,
                "misses": self._misses
            }
