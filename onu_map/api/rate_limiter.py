"""
OnuStatusMap - Upstream Call Gate

Enforces the two budgets SmartOLT imposes on API consumers:
- A minimum spacing between ANY two outgoing calls (global clock)
- A sliding one-hour quota for the expensive bulk endpoints (gps, details)

Both constraints apply to every restricted call. All state lives on one
RateLimiter instance and is mutated from a single asyncio event loop.
"""

import asyncio
import logging
import math
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Callable, Deque, Dict, Optional

from onu_map.api.errors import QuotaExceededError
from onu_map.utils.config import RateLimitConfig


logger = logging.getLogger(__name__)

# Sliding window for the hourly quotas
QUOTA_WINDOW_SECONDS = 60 * 60


class EndpointClass(str, Enum):
    """Budget class of an upstream endpoint."""
    NORMAL = "normal"
    GPS = "gps"
    DETAILS = "details"

    @property
    def is_restricted(self) -> bool:
        return self is not EndpointClass.NORMAL


@dataclass
class QuotaCheck:
    """Result of a quota check for one endpoint class."""
    allowed: bool
    wait_minutes: int = 0
    reset_time: Optional[datetime] = None


class RateLimiter:
    """
    Global call spacing plus per-class hourly quotas.

    Responsibilities:
    - throttle(): suspend the caller until the global spacing has elapsed
    - check_quota() / record_call(): sliding-window bookkeeping
    - reserve(): serialize check -> call -> record for one restricted class
    - remaining() / get_status(): report budget left in the window
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Any] = asyncio.sleep
    ):
        """
        Initialize the rate limiter.

        Args:
            config: Spacing and quota settings
            clock: Wall clock in seconds (injectable for tests)
            sleep: Coroutine used to wait (injectable for tests)
        """
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._last_call_time = 0.0
        self._call_times: Dict[EndpointClass, Deque[float]] = {
            EndpointClass.GPS: deque(),
            EndpointClass.DETAILS: deque()
        }
        self._limits: Dict[EndpointClass, int] = {
            EndpointClass.GPS: config.gps_limit,
            EndpointClass.DETAILS: config.details_limit
        }
        # Created lazily so the limiter can be built outside a running loop
        self._spacing_lock: Optional[asyncio.Lock] = None
        self._quota_locks: Dict[EndpointClass, asyncio.Lock] = {}

    @property
    def gps_limit(self) -> int:
        return self._limits[EndpointClass.GPS]

    @property
    def details_limit(self) -> int:
        return self._limits[EndpointClass.DETAILS]

    async def throttle(self) -> None:
        """
        Wait until the global minimum spacing has elapsed since the last call.

        Concurrent callers queue on one lock, so each leaves at least
        api_delay seconds after the previous one.
        """
        if self._spacing_lock is None:
            self._spacing_lock = asyncio.Lock()

        async with self._spacing_lock:
            elapsed = self._clock() - self._last_call_time
            delay = self.config.api_delay_seconds
            if elapsed < delay:
                wait_time = delay - elapsed
                logger.debug(f"Rate limiting: waiting {wait_time * 1000:.0f}ms")
                await self._sleep(wait_time)
            self._last_call_time = self._clock()

    def _prune(self, endpoint_class: EndpointClass, now: float) -> Deque[float]:
        """Drop timestamps that fell out of the sliding window."""
        calls = self._call_times[endpoint_class]
        window_start = now - QUOTA_WINDOW_SECONDS
        while calls and calls[0] <= window_start:
            calls.popleft()
        return calls

    def check_quota(self, endpoint_class: EndpointClass) -> QuotaCheck:
        """
        Check whether a restricted class may make another call this hour.

        Args:
            endpoint_class: Class of the endpoint about to be called

        Returns:
            QuotaCheck; when not allowed, wait_minutes is the number of whole
            minutes until the oldest call leaves the window
        """
        endpoint_class = EndpointClass(endpoint_class)
        if not endpoint_class.is_restricted:
            return QuotaCheck(allowed=True)

        now = self._clock()
        calls = self._prune(endpoint_class, now)
        limit = self._limits[endpoint_class]

        if len(calls) >= limit:
            reset_at = (calls[0] if calls else now) + QUOTA_WINDOW_SECONDS
            wait_minutes = max(1, math.ceil((reset_at - now) / 60))
            logger.warning(
                f"[RATE LIMIT] Quota reached for {endpoint_class.value}. "
                f"Wait {wait_minutes} minutes."
            )
            return QuotaCheck(
                allowed=False,
                wait_minutes=wait_minutes,
                reset_time=datetime.fromtimestamp(reset_at)
            )

        return QuotaCheck(allowed=True)

    def record_call(self, endpoint_class: EndpointClass) -> None:
        """Record a successful call against a restricted class."""
        endpoint_class = EndpointClass(endpoint_class)
        if not endpoint_class.is_restricted:
            return
        calls = self._call_times[endpoint_class]
        calls.append(self._clock())
        logger.debug(f"Recorded {endpoint_class.value} call. Count: {len(calls)}")

    def remaining(self, endpoint_class: EndpointClass) -> Optional[int]:
        """
        Calls left in the current window.

        Returns:
            Remaining calls clamped at zero, or None for unrestricted classes
        """
        endpoint_class = EndpointClass(endpoint_class)
        if not endpoint_class.is_restricted:
            return None
        calls = self._prune(endpoint_class, self._clock())
        return max(0, self._limits[endpoint_class] - len(calls))

    @asynccontextmanager
    async def reserve(self, endpoint_class: EndpointClass) -> AsyncIterator[None]:
        """
        Hold the quota slot of a restricted class for the duration of a call.

        The per-class lock makes check-then-record atomic: a second caller
        of the same class only checks once the first has recorded (or failed).

        Raises:
            QuotaExceededError: If the class has no calls left this hour
        """
        endpoint_class = EndpointClass(endpoint_class)
        if not endpoint_class.is_restricted:
            yield
            return

        lock = self._quota_locks.get(endpoint_class)
        if lock is None:
            lock = asyncio.Lock()
            self._quota_locks[endpoint_class] = lock

        async with lock:
            check = self.check_quota(endpoint_class)
            if not check.allowed:
                raise QuotaExceededError(
                    endpoint_class.value,
                    check.wait_minutes,
                    check.reset_time
                )
            yield

    def get_status(self) -> Dict[str, Any]:
        """Quota snapshot for the status endpoint and dashboard badges."""
        return {
            "gps_remaining": self.remaining(EndpointClass.GPS),
            "details_remaining": self.remaining(EndpointClass.DETAILS),
            "gps_limit": self.gps_limit,
            "details_limit": self.details_limit
        }

