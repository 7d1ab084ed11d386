"""
Tests for RateLimiter

Covers global call spacing and the sliding one-hour quotas, using a fake
clock so no test actually sleeps.
"""

import pytest

from onu_map.api.errors import QuotaExceededError
from onu_map.api.rate_limiter import EndpointClass, RateLimiter
from onu_map.utils.config import RateLimitConfig


class FakeClock:
    """Manually advanced clock with an async sleep that advances it."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    config = RateLimitConfig(api_delay_ms=8000, gps_limit=3, details_limit=3)
    return RateLimiter(config, clock=clock, sleep=clock.sleep)


class TestQuota:
    """Sliding-window quota bookkeeping."""

    def test_fresh_limiter_allows_restricted_calls(self, limiter):
        assert limiter.check_quota(EndpointClass.GPS).allowed
        assert limiter.remaining(EndpointClass.GPS) == 3
        assert limiter.remaining(EndpointClass.DETAILS) == 3

    def test_quota_exhausted_after_limit_calls(self, limiter):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        check = limiter.check_quota(EndpointClass.GPS)
        assert not check.allowed
        assert check.wait_minutes == 60
        assert check.reset_time is not None
        assert limiter.remaining(EndpointClass.GPS) == 0

    def test_classes_are_independent(self, limiter):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        assert limiter.check_quota(EndpointClass.DETAILS).allowed
        assert limiter.remaining(EndpointClass.DETAILS) == 3

    def test_wait_minutes_counts_down_to_oldest_call(self, limiter, clock):
        for _ in range(3):
            limiter.record_call(EndpointClass.DETAILS)

        clock.advance(30 * 60)
        check = limiter.check_quota(EndpointClass.DETAILS)
        assert not check.allowed
        assert check.wait_minutes == 30

    def test_wait_minutes_is_at_least_one(self, limiter, clock):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        clock.advance(3600 - 5)
        assert limiter.check_quota(EndpointClass.GPS).wait_minutes == 1

    def test_window_slides_after_an_hour(self, limiter, clock):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        clock.advance(61 * 60)
        assert limiter.check_quota(EndpointClass.GPS).allowed
        assert limiter.remaining(EndpointClass.GPS) == 3

    def test_oldest_call_leaves_window_first(self, limiter, clock):
        limiter.record_call(EndpointClass.GPS)
        clock.advance(20 * 60)
        limiter.record_call(EndpointClass.GPS)
        limiter.record_call(EndpointClass.GPS)

        clock.advance(41 * 60)
        assert limiter.remaining(EndpointClass.GPS) == 1

    def test_remaining_is_clamped_at_zero(self, limiter):
        for _ in range(5):
            limiter.record_call(EndpointClass.GPS)

        assert limiter.remaining(EndpointClass.GPS) == 0

    def test_normal_class_is_unrestricted(self, limiter):
        for _ in range(10):
            limiter.record_call(EndpointClass.NORMAL)

        assert limiter.check_quota(EndpointClass.NORMAL).allowed
        assert limiter.remaining(EndpointClass.NORMAL) is None

    def test_accepts_plain_strings(self, limiter):
        limiter.record_call("gps")
        assert limiter.remaining("gps") == 2

    def test_get_status(self, limiter):
        limiter.record_call(EndpointClass.DETAILS)

        assert limiter.get_status() == {
            "gps_remaining": 3,
            "details_remaining": 2,
            "gps_limit": 3,
            "details_limit": 3
        }


class TestThrottle:
    """Global minimum spacing between calls."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, limiter, clock):
        await limiter.throttle()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_calls_are_spaced(self, limiter, clock):
        await limiter.throttle()
        await limiter.throttle()

        assert clock.sleeps == [pytest.approx(8.0)]

    @pytest.mark.asyncio
    async def test_partial_wait_after_some_time(self, limiter, clock):
        await limiter.throttle()
        clock.advance(3.0)
        await limiter.throttle()

        assert clock.sleeps == [pytest.approx(5.0)]

    @pytest.mark.asyncio
    async def test_no_wait_once_spacing_elapsed(self, limiter, clock):
        await limiter.throttle()
        clock.advance(10.0)
        await limiter.throttle()

        assert clock.sleeps == []


class TestReserve:
    """Atomic check -> call -> record for restricted classes."""

    @pytest.mark.asyncio
    async def test_reserve_raises_when_exhausted(self, limiter):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        with pytest.raises(QuotaExceededError) as exc_info:
            async with limiter.reserve(EndpointClass.GPS):
                pass

        assert exc_info.value.wait_minutes == 60
        assert exc_info.value.to_dict()["error_kind"] == "quota_exceeded"

    @pytest.mark.asyncio
    async def test_failed_call_inside_reserve_is_not_recorded(self, limiter):
        with pytest.raises(RuntimeError):
            async with limiter.reserve(EndpointClass.DETAILS):
                raise RuntimeError("upstream failed")

        assert limiter.remaining(EndpointClass.DETAILS) == 3

    @pytest.mark.asyncio
    async def test_normal_class_never_blocked(self, limiter):
        for _ in range(3):
            limiter.record_call(EndpointClass.GPS)

        async with limiter.reserve(EndpointClass.NORMAL):
            pass

    @pytest.mark.asyncio
    async def test_fourth_reservation_in_hour_fails(self, limiter):
        for _ in range(3):
            async with limiter.reserve(EndpointClass.GPS):
                limiter.record_call(EndpointClass.GPS)

        with pytest.raises(QuotaExceededError):
            async with limiter.reserve(EndpointClass.GPS):
                pass
