"""
In-Memory State Store
=====================
Process-local TTL store for development and testing.
"""

import time
from typing import Callable, Dict, Optional, Tuple


class InMemoryStateStore:
    """
    Simple in-memory TTL store.

    For development and testing only.
    Use RedisStateStore in production.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[Tuple[str, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._data[key]
            return None
        return entry

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def pop(self, key: str) -> Optional[str]:
        entry = self._live(key)
        if entry is None:
            return None
        del self._data[key]
        return entry[0]

    async def incr(self, key: str, ttl_seconds: int) -> int:
        entry = self._live(key)
        if entry is None:
            count, expires_at = 1, self._clock() + max(1, ttl_seconds)
        else:
            count, expires_at = int(entry[0]) + 1, entry[1]
        self._data[key] = (str(count), expires_at)
        return count

    async def ttl(self, key: str) -> Optional[int]:
        entry = self._live(key)
        if entry is None:
            return None
        return max(0, int(round(entry[1] - self._clock())))

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()
