"""Sliding-window rate limiter shared by outbound provider calls and API endpoints."""

import asyncio
import time
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict

from app.core.errors import RateLimitExceeded
from app.core.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter.

    Allows at most ``max_requests`` calls per key within any ``window_seconds``
    span. Uses in-memory storage and no locking, so a single instance is only
    safe within one event loop.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Calls allowed per window
            window_seconds: Window duration in seconds
            clock: Monotonic time source (injectable for tests)
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

        # Storage: key -> timestamps of admitted calls, oldest first
        self._windows: Dict[str, Deque[float]] = defaultdict(deque)
        self._request_counts: Dict[str, int] = defaultdict(int)

    def _prune(self, key: str, now: float) -> Deque[float]:
        window = self._windows.get(key)
        if window is None:
            return deque()
        while window and now - window[0] >= self.window_seconds:
            window.popleft()
        if not window:
            # Drop idle keys
            del self._windows[key]
            self._request_counts.pop(key, None)
        return window

    def wait_time(self, key: str) -> float:
        """
        Seconds until the next call for ``key`` would be admitted.

        Args:
            key: Rate limit key (e.g., provider name)

        Returns:
            0.0 if a call is allowed now
        """
        now = self._clock()
        window = self._prune(key, now)
        if len(window) < self.max_requests:
            return 0.0
        return max(0.0, self.window_seconds - (now - window[0]))

    def try_acquire(self, key: str) -> bool:
        """
        Record a call for ``key`` if the window has room.

        Args:
            key: Rate limit key

        Returns:
            True if admitted, False if rate limited
        """
        now = self._clock()
        window = self._prune(key, now)
        if len(window) >= self.max_requests:
            return False
        self._windows[key].append(now)
        self._request_counts[key] += 1
        return True

    def check_limit(self, key: str) -> None:
        """
        Admit a call or raise.

        Args:
            key: Rate limit key

        Raises:
            RateLimitExceeded: If the window is full
        """
        if self.try_acquire(key):
            return

        retry_after = self.wait_time(key)
        logger.warning(
            f"Rate limit exceeded for key: {key}, "
            f"window: {self.max_requests}/{self.window_seconds}s, "
            f"retry after: {retry_after:.1f}s"
        )
        raise RateLimitExceeded(key, retry_after)

    async def acquire(self, key: str) -> None:
        """Wait until a call for ``key`` is admitted, then record it."""
        while not self.try_acquire(key):
            delay = self.wait_time(key)
            logger.debug(f"Rate limiter pausing {delay:.2f}s for {key}")
            await asyncio.sleep(delay)

    def get_stats(self, key: str) -> Dict[str, Any]:
        """
        Get rate limit stats for a key.

        Args:
            key: Rate limit key

        Returns:
            Dictionary with stats
        """
        window = self._prune(key, self._clock())
        return {
            "requests_in_window": len(window),
            "requests_remaining": self.max_requests - len(window),
            "max_requests": self.max_requests,
            "window_seconds": self.window_seconds,
            "total_requests": self._request_counts.get(key, 0),
        }

    def reset(self, key: str) -> None:
        """
        Reset rate limit for a key.

        Args:
            key: Rate limit key
        """
        self._windows.pop(key, None)
        self._request_counts.pop(key, None)

        logger.info(f"Rate limit reset for key: {key}")
