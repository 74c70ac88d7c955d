"""
Session Manager
===============
Issues, reads and terminates the authenticated-session cookie.

Only three questions are answered for the rest of the gateway: is there a
valid session, who is its subject, and how to end it.
"""

import secrets
import time
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response
import structlog

from ..errors import StoreUnavailable
from ..store import EphemeralStore
from .models import AuthenticatedSession, Identity
from .signer import TokenSigner

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "auth_token"
REVOKED_PREFIX = "revoked_session:"


class SessionManager:
    """Signed-cookie sessions with server-side revocation."""

    def __init__(
        self,
        store: EphemeralStore,
        secret: str,
        max_age: int = 3600,
        secure_cookies: bool = False,
        cookie_name: str = SESSION_COOKIE,
    ):
        self.store = store
        self.signer = TokenSigner(secret, purpose="session")
        self.max_age = max_age
        self.secure_cookies = secure_cookies
        self.cookie_name = cookie_name

    def issue(self, identity: Identity) -> str:
        """Create a signed session token for ``identity``."""
        return self.signer.sign(
            {
                "sub": identity.id,
                "email": identity.email,
                "name": identity.name,
                "sid": secrets.token_hex(16),
            },
            self.max_age,
        )

    def establish(self, response: Response, identity: Identity) -> str:
        token = self.issue(identity)
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.max_age,
            httponly=True,
            secure=self.secure_cookies,
            samesite="lax",
            path="/",
        )
        return token

    async def read_token(self, token: Optional[str]) -> Optional[AuthenticatedSession]:
        claims = self.signer.verify(token) if token else None
        if claims is None or not claims.get("sub"):
            return None

        try:
            if await self.store.get(f"{REVOKED_PREFIX}{claims.get('sid')}") is not None:
                return None
        except StoreUnavailable:
            # Revocation cannot be checked, treat as signed out
            logger.warning("session_revocation_check_failed")
            return None

        return AuthenticatedSession(
            identity=Identity(id=claims["sub"], email=claims.get("email"), name=claims.get("name")),
            session_id=claims.get("sid", ""),
            issued_at=int(claims.get("iat", 0)),
            expires_at=int(claims.get("exp", 0)),
        )

    async def read(self, request: Request) -> Optional[AuthenticatedSession]:
        """Return the request's valid session, or None."""
        return await self.read_token(request.cookies.get(self.cookie_name))

    async def terminate(self, request: Request, response: Response) -> None:
        """
        Revoke the request's session for the rest of its lifetime and clear
        the cookie. Raises StoreUnavailable if revocation cannot be recorded.
        """
        session = await self.read(request)
        response.delete_cookie(self.cookie_name, path="/")
        if session is None:
            return

        remaining = session.expires_at - int(time.time())
        if remaining > 0:
            await self.store.put(f"{REVOKED_PREFIX}{session.session_id}", "1", remaining)
