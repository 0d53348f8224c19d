"""
Sliding-window rate limiter for model API requests.

The Anthropic tier allows 50 requests/minute; the default budget of 40
leaves headroom. Waiters are served in arrival order.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Optional

from shared.utils.constants import RATE_LIMIT_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allow at most `max_requests` acquisitions in any `window_seconds` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        self._evict(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        """Wait until a request slot is free, then take it."""
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return
                wait = max(self._timestamps[0] + self.window_seconds - now, 0.1)
                logger.info(f"Model rate limit reached, waiting {wait:.1f}s")
                await asyncio.sleep(wait)


_rate_limiter: Optional[SlidingWindowRateLimiter] = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Get or create the process-wide model rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        from config import get_settings

        _rate_limiter = SlidingWindowRateLimiter(get_settings().llm_requests_per_minute)
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the process-wide limiter (useful for testing)."""
    global _rate_limiter
    _rate_limiter = None
