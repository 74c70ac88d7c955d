"""
Security Headers
================
Response hardening for the login surface.

Every response gets framing, sniffing and referrer protection; HSTS is added
in production. Responses under the handshake prefixes also get
``Cache-Control: no-store`` since their redirects and bodies carry state,
tokens and passcodes.
"""

from typing import Iterable, List, Optional, Tuple

HANDSHAKE_PREFIXES = ("/auth", "/otp")


class SecurityHeadersMiddleware:
    """ASGI middleware appending a fixed header set to each HTTP response."""

    def __init__(
        self,
        app,
        enable_hsts: bool = True,
        hsts_max_age: int = 31536000,
        frame_options: str = "DENY",
        referrer_policy: str = "strict-origin-when-cross-origin",
        no_store_prefixes: Optional[Iterable[str]] = None,
    ):
        self.app = app
        self.no_store_prefixes = tuple(no_store_prefixes or HANDSHAKE_PREFIXES)

        self.headers: List[Tuple[bytes, bytes]] = [
            (b"x-frame-options", frame_options.encode()),
            (b"x-content-type-options", b"nosniff"),
            (b"referrer-policy", referrer_policy.encode()),
        ]
        if enable_hsts:
            self.headers.append(
                (b"strict-transport-security", f"max-age={hsts_max_age}; includeSubDomains".encode())
            )

    def _is_no_store(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.no_store_prefixes)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        extra = list(self.headers)
        if self._is_no_store(scope.get("path", "")):
            extra.append((b"cache-control", b"no-store"))
        names = {name for name, _ in extra}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                # Ours replace any same-named header set by the route
                existing = [
                    (name, value) for name, value in message.get("headers", [])
                    if name.lower() not in names
                ]
                message = {**message, "headers": existing + extra}
            await send(message)

        await self.app(scope, receive, send_wrapper)
