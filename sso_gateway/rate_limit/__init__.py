"""
Rate Limiting
=============
Sliding window limiters guarding the handshake-initiation endpoint.

When no limiter backend is configured the gate is skipped (fail-open).
"""

from .models import RateLimitResult, RateLimitInfo, RateLimiter
from .in_memory import InMemorySlidingWindowLimiter
from .sliding_window import SlidingWindowLimiter

__all__ = [
    "RateLimitResult",
    "RateLimitInfo",
    "RateLimiter",
    "InMemorySlidingWindowLimiter",
    "SlidingWindowLimiter",
]
