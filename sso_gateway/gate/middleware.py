"""
Access Gate Middleware

Per-navigation routing guard in front of the login portal:

- protected path, no valid session  -> redirect to the login page
- login page, valid session         -> redirect to the landing page
- everything else                   -> pass through

Usage:
    app.add_middleware(
        AccessGateMiddleware,
        session_reader=session_manager.read,
        login_path="/login",
        landing_path="/profile",
    )
"""

from typing import Awaitable, Callable, Iterable, Optional, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse
import structlog

logger = structlog.get_logger(__name__)

SessionReader = Callable[[Request], Awaitable[Optional[object]]]


class AccessGateMiddleware(BaseHTTPMiddleware):
    """
    Redirects unauthenticated traffic to the login surface and
    authenticated traffic away from it. Holds no state of its own.
    """

    # Prefixes reachable without a session
    DEFAULT_PUBLIC_PREFIXES: Set[str] = {
        "/login",
        "/callback",
        "/auth",
        "/otp",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    def __init__(
        self,
        app,
        session_reader: SessionReader,
        login_path: str = "/login",
        landing_path: str = "/profile",
        public_prefixes: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.session_reader = session_reader
        self.login_path = login_path
        self.landing_path = landing_path
        self.public_prefixes = set(public_prefixes or self.DEFAULT_PUBLIC_PREFIXES)
        self.public_prefixes.add(login_path)

    def is_public_path(self, path: str) -> bool:
        """Root and anything under a public prefix."""
        if path == "/":
            return True
        for prefix in self.public_prefixes:
            prefix = prefix.rstrip("/")
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    def is_login_path(self, path: str) -> bool:
        return path.rstrip("/") == self.login_path.rstrip("/")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        public = self.is_public_path(path)
        login_page = self.is_login_path(path)

        # Public non-login paths never need the session lookup
        if public and not login_page:
            return await call_next(request)

        session = await self.session_reader(request)

        if login_page and session is not None:
            return RedirectResponse(self.landing_path, status_code=307)

        if not public and session is None:
            logger.info("access_gate_redirect", path=path)
            return RedirectResponse(self.login_path, status_code=307)

        return await call_next(request)
