"""
Redis State Store
=================
State store backed by Redis native key expiry.
"""

import asyncio
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed
import structlog

from ..errors import StoreUnavailable

logger = structlog.get_logger(__name__)

_STORE_ERRORS = (RedisError, asyncio.TimeoutError, OSError)


def _log_retry(retry_state) -> None:
    logger.warning(
        "store_write_retry",
        func=retry_state.fn.__name__,
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


# Idempotent writes get exactly one extra attempt.
_retry_write = retry(
    retry=retry_if_exception_type(StoreUnavailable),
    stop=stop_after_attempt(2),
    wait=wait_fixed(0.05),
    before_sleep=_log_retry,
    reraise=True,
)


class RedisStateStore:
    """
    Redis-backed ephemeral store.

    Every command carries the client's socket timeout, so a slow or absent
    Redis surfaces as ``StoreUnavailable`` instead of hanging the request.
    """

    def __init__(self, redis_client):
        self.redis = redis_client

    @classmethod
    def from_url(cls, url: str, timeout: float = 2.0) -> "RedisStateStore":
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    def _unavailable(self, operation: str, key: str, exc: Exception) -> StoreUnavailable:
        logger.error("store_operation_failed", operation=operation, key=key.split(":")[0], error=str(exc))
        return StoreUnavailable()

    @_retry_write
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.redis.set(key, value, ex=ttl_seconds)
        except _STORE_ERRORS as e:
            raise self._unavailable("put", key, e) from e

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except _STORE_ERRORS as e:
            raise self._unavailable("get", key, e) from e

    @_retry_write
    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except _STORE_ERRORS as e:
            raise self._unavailable("delete", key, e) from e

    async def pop(self, key: str) -> Optional[str]:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.get(key)
                pipe.delete(key)
                value, _ = await pipe.execute()
            return value
        except _STORE_ERRORS as e:
            raise self._unavailable("pop", key, e) from e

    async def incr(self, key: str, ttl_seconds: int) -> int:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=max(1, ttl_seconds), nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
            return int(count)
        except _STORE_ERRORS as e:
            raise self._unavailable("incr", key, e) from e

    async def ttl(self, key: str) -> Optional[int]:
        try:
            remaining = await self.redis.ttl(key)
        except _STORE_ERRORS as e:
            raise self._unavailable("ttl", key, e) from e
        # -2: missing key, -1: no expiry
        if remaining is None or remaining == -2:
            return None
        return int(remaining)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except _STORE_ERRORS as e:
            raise self._unavailable("ping", "ping", e) from e

    async def close(self) -> None:
        await self.redis.aclose()
