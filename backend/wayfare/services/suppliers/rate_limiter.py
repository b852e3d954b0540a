"""Token bucket with an explicit reset time, owned by one adapter instance."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    pass


class TokenBucketRateLimiter:
    """Allows `capacity` requests per `window_seconds`.

    The bucket refills completely once the clock passes `reset_at`.
    Clock and sleep are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        capacity: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_wait_seconds: float | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._max_wait = max_wait_seconds
        self._tokens = capacity
        self.reset_at = clock() + window_seconds
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> int:
        self._refill()
        return self._tokens

    def seconds_until_reset(self) -> float:
        return max(0.0, self.reset_at - self._clock())

    def _refill(self):
        now = self._clock()
        if now >= self.reset_at:
            self._tokens = self.capacity
            self.reset_at = now + self.window_seconds

    def try_acquire(self) -> bool:
        self._refill()
        if self._tokens > 0:
            self._tokens -= 1
            return True
        return False

    async def acquire(self):
        """Take one token, waiting for the next reset when the bucket is empty."""
        async with self._lock:
            while not self.try_acquire():
                wait = self.seconds_until_reset()
                if self._max_wait is not None and wait > self._max_wait:
                    raise RateLimitExceeded(f"Rate limit reached, resets in {wait:.0f}s")
                logger.warning(f"Rate limit reached. Waiting {wait:.0f} seconds...")
                await self._sleep(wait)

    def reset(self):
        self._tokens = self.capacity
        self.reset_at = self._clock() + self.window_seconds
