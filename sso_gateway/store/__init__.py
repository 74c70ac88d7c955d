"""
Ephemeral State Store
=====================
TTL-bound key/value storage for pending handshakes and OTP state.
"""

from .base import EphemeralStore, StoreUnavailable
from .in_memory import InMemoryStateStore
from .redis_store import RedisStateStore

__all__ = [
    "EphemeralStore",
    "StoreUnavailable",
    "InMemoryStateStore",
    "RedisStateStore",
]
