"""
State Store Interface
=====================
Key/value store with per-key time-to-live.

Absence is a normal result (``None``). Infrastructure failures raise
``StoreUnavailable`` so callers can tell "expired" from "store down".
"""

from typing import Optional, Protocol

from ..errors import StoreUnavailable

__all__ = ["EphemeralStore", "StoreUnavailable"]


class EphemeralStore(Protocol):
    """Contract implemented by every state store backend."""

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def pop(self, key: str) -> Optional[str]:
        """Atomically read and delete ``key``."""
        ...

    async def incr(self, key: str, ttl_seconds: int) -> int:
        """
        Increment an integer counter.

        A missing counter is created with ``ttl_seconds``; an existing one
        keeps its current expiry.
        """
        ...

    async def ttl(self, key: str) -> Optional[int]:
        """Remaining lifetime in seconds, or None if the key is absent."""
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...
