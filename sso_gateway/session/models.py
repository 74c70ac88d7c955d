"""
Session Models
==============
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class Identity:
    """The subject of an authenticated session."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AuthenticatedSession:
    identity: Identity
    session_id: str
    issued_at: int
    expires_at: int
