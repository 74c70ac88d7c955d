"""
Registry Models
===============
Registered client application records.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class AppConfig:
    """A client application allowed to delegate login to the gateway."""
    app_id: str
    name: str
    allowed_redirect_urls: Tuple[str, ...] = ()
    allowed_origins: Tuple[str, ...] = ()
    # Key shared with this app only; signs the identity token handed back to it
    handoff_secret: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, app_id: str, data: dict) -> "AppConfig":
        return cls(
            app_id=app_id,
            name=data.get("name", app_id),
            allowed_redirect_urls=tuple(data.get("allowedRedirectUrls", ())),
            allowed_origins=tuple(data.get("allowedOrigins", ())),
            handoff_secret=data.get("handoffSecret") or None,
        )
