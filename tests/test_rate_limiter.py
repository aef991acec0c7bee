"""Tests for the sliding-window rate limiter."""

import pytest

from app.core.errors import RateLimitExceeded
from app.core.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Admission
# ============================================================================


class TestAdmission:
    def test_admits_up_to_max_requests(self, clock):
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)

        assert [limiter.try_acquire("ip") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self, clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

        assert limiter.try_acquire("a") is True
        assert limiter.try_acquire("b") is True
        assert limiter.try_acquire("a") is False

    def test_window_slides(self, clock):
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.try_acquire("ip")
        clock.advance(30)
        limiter.try_acquire("ip")

        assert limiter.try_acquire("ip") is False

        clock.advance(30)  # first call is now exactly one window old
        assert limiter.try_acquire("ip") is True
        assert limiter.try_acquire("ip") is False

    def test_wait_time(self, clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        assert limiter.wait_time("ip") == 0.0

        limiter.try_acquire("ip")
        clock.advance(15)

        assert limiter.wait_time("ip") == pytest.approx(45.0)

    def test_check_limit_raises_with_retry_after(self, clock):
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)
        for _ in range(3):
            limiter.check_limit("203.0.113.9")

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check_limit("203.0.113.9")

        assert exc_info.value.key == "203.0.113.9"
        assert exc_info.value.retry_after == pytest.approx(60.0)

    def test_idle_keys_evicted(self, clock):
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
        for ip in ("198.51.100.1", "198.51.100.2"):
            limiter.try_acquire(ip)

        clock.advance(60)
        assert limiter.wait_time("198.51.100.1") == 0.0
        assert limiter.get_stats("198.51.100.2")["requests_in_window"] == 0

        assert limiter._windows == {}
        assert limiter._request_counts == {}
        assert limiter.try_acquire("198.51.100.1") is True
        assert limiter.get_stats("198.51.100.1")["requests_in_window"] == 1

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)


# ============================================================================
# Stats and reset
# ============================================================================


class TestStats:
    def test_get_stats(self, clock):
        limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.try_acquire("openai")
        limiter.try_acquire("openai")

        stats = limiter.get_stats("openai")

        assert stats["requests_in_window"] == 2
        assert stats["requests_remaining"] == 3
        assert stats["total_requests"] == 2

    def test_reset(self, clock):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.try_acquire("openai")
        limiter.reset("openai")

        assert limiter.try_acquire("openai") is True


@pytest.mark.asyncio
async def test_acquire_returns_immediately_with_room(clock):
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    await limiter.acquire("perplexity")

    assert limiter.get_stats("perplexity")["requests_in_window"] == 1
