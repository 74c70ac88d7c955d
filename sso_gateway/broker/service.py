"""
Login Broker
============
Orchestrates the cross-application login handshake.

Initiated: a client app sends the browser here with ``app_id`` and
``return_url``; both are checked against the App Registry and a
PendingLoginState is written under a random session id.

Pending: the login surface looks the handshake up by the session cookie.

Resolved: once identity is established the pending state is consumed
(single use) and the browser is sent back to the validated return URL with
the CSRF ``state`` and a short-lived signed identity token. Without a
pending handshake the browser goes to the gateway's own landing page.
"""

import hmac
import json
from typing import Optional

import structlog

from ..errors import InvalidApp, InvalidReturnUrl, MissingParameters, RateLimited
from ..logging import log_audit
from ..rate_limit import RateLimiter
from ..registry import AppConfig, AppRegistry
from ..session import Identity, TokenSigner
from ..store import EphemeralStore
from .models import InitiatedLogin, PendingLoginState, ResolvedLogin
from .tokens import append_query, generate_session_id, generate_state, sanitize_return_url

logger = structlog.get_logger(__name__)

SESSION_PREFIX = "session:"
EXTERNAL_STATE_PREFIX = "oidc_state:"
ANONYMOUS_CLIENT = "anonymous"


class LoginBroker:
    """Handshake state machine over the App Registry and the state store."""

    def __init__(
        self,
        registry: AppRegistry,
        store: EphemeralStore,
        rate_limiter: Optional[RateLimiter] = None,
        session_ttl: int = 600,
        handoff_ttl: int = 60,
        default_destination: str = "/profile",
    ):
        self.registry = registry
        self.store = store
        self.rate_limiter = rate_limiter
        self.session_ttl = session_ttl
        self.handoff_ttl = handoff_ttl
        self.default_destination = default_destination

        if rate_limiter is None:
            logger.warning("login_rate_limiter_disabled", reason="no limiter backend configured")

    @staticmethod
    def _session_key(session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    async def _check_rate_limit(self, client_ip: Optional[str]) -> None:
        # Unconfigured limiter means no gate at all
        if self.rate_limiter is None:
            return
        identifier = client_ip or ANONYMOUS_CLIENT
        info = await self.rate_limiter.allow(identifier)
        if not info.allowed:
            log_audit("security.rate_limit", outcome="blocked", ip=identifier)
            raise RateLimited(retry_after=info.retry_after, headers=info.headers)

    async def initiate(self, app_id: Optional[str], return_url: Optional[str], client_ip: Optional[str] = None) -> InitiatedLogin:
        """
        Start a delegated login for ``app_id``.

        Raises:
            RateLimited: too many initiations from ``client_ip``
            MissingParameters: app_id or return_url absent
            InvalidApp: app_id not registered
            InvalidReturnUrl: return_url malformed or not allow-listed
            StoreUnavailable: pending state could not be written
        """
        await self._check_rate_limit(client_ip)

        if not app_id or not return_url:
            raise MissingParameters()

        if self.registry.lookup(app_id) is None:
            raise InvalidApp()

        try:
            sanitize_return_url(return_url)
        except ValueError:
            raise InvalidReturnUrl("Invalid return_url format")

        if not self.registry.is_allowed_redirect(app_id, return_url):
            raise InvalidReturnUrl()

        session_id = generate_session_id()
        pending = PendingLoginState(app_id=app_id, return_url=return_url, state=generate_state())
        await self.store.put(self._session_key(session_id), pending.to_json(), self.session_ttl)

        log_audit("auth.initiate", app_id=app_id, ip=client_ip or "unknown")
        return InitiatedLogin(session_id=session_id, pending=pending)

    async def lookup(self, session_id: Optional[str]) -> Optional[PendingLoginState]:
        """Pending handshake for ``session_id``; expired, consumed and unknown ids are all None."""
        if not session_id:
            return None
        raw = await self.store.get(self._session_key(session_id))
        if raw is None:
            return None
        return PendingLoginState.from_json(raw)

    async def begin_external(self, session_id: Optional[str]) -> str:
        """
        Mint a fresh opaque ``state`` for an external identity provider
        redirect. It maps straight back to the handshake's session id so the
        return leg is a direct lookup.

        The caller must also bind the state to the browser (cookie) and pass
        that binding to ``consume_external``.
        """
        pending = await self.lookup(session_id)
        state = generate_state()
        payload = json.dumps({"sessionId": session_id if pending else None})
        await self.store.put(f"{EXTERNAL_STATE_PREFIX}{state}", payload, self.session_ttl)
        return state

    async def consume_external(self, state: Optional[str], bound_state: Optional[str]) -> Optional[dict]:
        """
        Single-use lookup of a ``state`` returned by the identity provider.

        ``bound_state`` is the state remembered by the browser that started
        the sign-in. A state arriving in any other browser is refused without
        touching the store.

        Returns:
            ``{"sessionId": ...}`` (sessionId may be None for a direct,
            non-delegated login), or None if the state was never issued,
            already used, expired or belongs to another browser
        """
        if not state or not bound_state:
            return None
        if not hmac.compare_digest(state.encode(), bound_state.encode()):
            log_audit("auth.external_state", outcome="blocked", reason="browser_mismatch")
            return None
        raw = await self.store.pop(f"{EXTERNAL_STATE_PREFIX}{state}")
        if raw is None:
            return None
        return json.loads(raw)

    def handoff_token(self, identity: Identity, app: AppConfig) -> Optional[str]:
        """
        Identity token for ``app``, signed with that app's own handoff key.

        Returns None for an app registered without a key.
        """
        if not app.handoff_secret:
            return None
        signer = TokenSigner(app.handoff_secret, purpose="handoff")
        return signer.sign(
            {"sub": identity.id, "email": identity.email, "name": identity.name, "aud": app.app_id},
            self.handoff_ttl,
        )

    async def resolve(self, session_id: Optional[str], identity: Identity) -> ResolvedLogin:
        """
        Consume the pending handshake and decide where the browser goes.
        """
        pending = None
        if session_id:
            raw = await self.store.pop(self._session_key(session_id))
            if raw is not None:
                pending = PendingLoginState.from_json(raw)

        if pending is None:
            log_audit("auth.login", delegated=False, subject=identity.id)
            return ResolvedLogin(redirect_url=self.default_destination)

        params = {"state": pending.state}
        app = self.registry.lookup(pending.app_id)
        token = self.handoff_token(identity, app) if app else None
        if token is None:
            logger.warning("handoff_token_unavailable", app_id=pending.app_id)
        else:
            params["token"] = token

        redirect_url = append_query(pending.return_url, **params)
        log_audit("auth.login", delegated=True, app_id=pending.app_id, subject=identity.id)
        return ResolvedLogin(redirect_url=redirect_url, app_id=pending.app_id)
