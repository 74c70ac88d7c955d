"""
Broker Models
=============
Records carried through one cross-application login handshake.
"""

import json
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PendingLoginState:
    """An in-flight handshake, keyed by session id in the state store."""
    app_id: str
    return_url: str
    state: str

    def to_json(self) -> str:
        return json.dumps({"appId": self.app_id, "returnUrl": self.return_url, "state": self.state})

    @classmethod
    def from_json(cls, raw: str) -> "PendingLoginState":
        data = json.loads(raw)
        return cls(app_id=data["appId"], return_url=data["returnUrl"], state=data["state"])

    def public_view(self) -> dict:
        return {"appId": self.app_id, "returnUrl": self.return_url, "state": self.state}


@dataclass(frozen=True)
class InitiatedLogin:
    session_id: str
    pending: PendingLoginState


@dataclass(frozen=True)
class ResolvedLogin:
    """Where the browser goes once identity is established."""
    redirect_url: str
    app_id: Optional[str] = None

    @property
    def delegated(self) -> bool:
        return self.app_id is not None
