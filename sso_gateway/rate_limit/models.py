"""
Rate Limit Models
=================
Data models for rate limiting results.
"""

from typing import Optional, Protocol
from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    DEGRADED = "degraded"


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None  # Seconds until retry allowed
    degraded: bool = False  # Backend failed, request let through

    @property
    def result(self) -> RateLimitResult:
        if self.degraded:
            return RateLimitResult.DEGRADED
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED

    @property
    def headers(self) -> dict:
        """Standard rate limit headers for the response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter(Protocol):
    async def allow(self, key: str) -> RateLimitInfo:
        ...
