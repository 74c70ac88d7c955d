"""
Sliding Window Rate Limiter
===========================
Sliding window rate limiter using Redis sorted sets.
"""

import asyncio
import time
import uuid

from redis.exceptions import RedisError
import structlog

from .models import RateLimitInfo

logger = structlog.get_logger(__name__)


class SlidingWindowLimiter:
    """
    Sliding window rate limiter using Redis sorted sets.

    Each permitted request is recorded as a member scored by its timestamp;
    a request is permitted while fewer than ``rate`` members fall inside
    the trailing ``window`` seconds.

    Fails open if Redis errors.
    """

    def __init__(self, redis_client, rate: int = 10, window: int = 60, prefix: str = "ratelimit:initiate"):
        self.redis = redis_client
        self.rate = rate
        self.window = window
        self.prefix = prefix

    def get_key(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier}"

    async def allow(self, identifier: str) -> RateLimitInfo:
        """
        Check and record one request for ``identifier``.

        The hit is recorded and the window counted in one transaction, so
        concurrent requests each see a count that includes the others. A hit
        that lands over the limit is removed again.
        """
        key = self.get_key(identifier)
        now = time.time()
        window_start = now - self.window
        reset_at = int(now + self.window)
        member = f"{now}:{uuid.uuid4().hex[:8]}"

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, window_start)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.expire(key, self.window * 2)
                _, _, count, _ = await pipe.execute()

            if count > self.rate:
                await self.redis.zrem(key, member)
                # Oldest entry decides when a slot frees up
                oldest = await self.redis.zrange(key, 0, 0, withscores=True)
                retry_after = (
                    max(1, int(oldest[0][1] + self.window - now))
                    if oldest else self.window
                )
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_at=reset_at,
                    retry_after=retry_after,
                )
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            logger.error("Rate limit check failed", error=str(e))
            return RateLimitInfo(
                allowed=True,
                remaining=self.rate,
                limit=self.rate,
                reset_at=reset_at,
                degraded=True,
            )

        return RateLimitInfo(
            allowed=True,
            remaining=self.rate - count,
            limit=self.rate,
            reset_at=reset_at,
        )
