"""Async token bucket limiting outbound calls against the sink's API quota."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from loguru import logger

from .errors import RateLimitWaitError


class TokenBucketLimiter:
    """
    Token bucket with ``rate`` tokens/second refill and ``burst`` capacity.

    ``wait()`` reserves a token (the balance may go negative) and sleeps until
    the reservation matures. If a deadline is given and the reservation would
    mature after it, no token is taken and RateLimitWaitError is raised at once.

    Safe for concurrent asyncio callers; the accounting runs under a lock.
    """

    def __init__(
        self,
        rate: float = 1.0,
        burst: int = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if burst <= 0:
            raise ValueError("burst must be > 0")
        self.rate = rate
        self.burst = burst
        self.clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = asyncio.Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last = now

    @property
    def tokens(self) -> float:
        """Current balance (refilled up to now)."""
        self._refill(self.clock())
        return self._tokens

    async def wait(self, deadline: Optional[float] = None) -> None:
        """Block until a token is available.

        Args:
            deadline: absolute time on this limiter's clock by which the token
                must be granted
        """
        async with self._lock:
            now = self.clock()
            self._refill(now)
            delay = 0.0 if self._tokens >= 1.0 else (1.0 - self._tokens) / self.rate
            if deadline is not None and now + delay > deadline:
                raise RateLimitWaitError(
                    f"rate limiter wait of {delay:.2f}s would exceed deadline"
                )
            self._tokens -= 1.0

        if delay > 0:
            logger.debug(f"rate limiter delaying call by {delay:.2f}s")
            await self._sleep(delay)
