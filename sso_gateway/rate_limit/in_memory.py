"""
In-Memory Rate Limiter
======================
Process-local sliding window rate limiter for development and testing.
"""

import time
from collections import deque
from typing import Callable, Deque, Dict

from .models import RateLimitInfo


class InMemorySlidingWindowLimiter:
    """
    In-memory sliding window limiter.

    For development and testing only.
    Use SlidingWindowLimiter in production.
    """

    def __init__(self, rate: int = 10, window: int = 60, clock: Callable[[], float] = time.time):
        """
        Args:
            rate: Number of requests allowed per window
            window: Window size in seconds
            clock: Time source, injectable for tests
        """
        self.rate = rate
        self.window = window
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Drop identifiers whose newest hit has left the window."""
        if now - self._last_sweep < self.window:
            return
        self._last_sweep = now
        cutoff = now - self.window
        for identifier in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[identifier]

    async def allow(self, identifier: str) -> RateLimitInfo:
        now = self._clock()
        self._sweep(now)
        reset_at = int(now + self.window)

        hits = self._hits.get(identifier)
        if hits is not None:
            while hits and hits[0] <= now - self.window:
                hits.popleft()

            if len(hits) >= self.rate:
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_at=reset_at,
                    retry_after=max(1, int(hits[0] + self.window - now)),
                )
        else:
            hits = self._hits[identifier] = deque()

        hits.append(now)
        return RateLimitInfo(
            allowed=True,
            remaining=self.rate - len(hits),
            limit=self.rate,
            reset_at=reset_at,
        )
