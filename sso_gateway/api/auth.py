"""
Auth Routes
===========

GET  /auth/initiate             - Start a delegated login (client app sends the browser here)
GET  /auth/check-login-session  - Pending handshake for the login_session cookie
GET  /auth/session              - Current authenticated user
POST /auth/logout               - End the authenticated session
GET  /auth/complete             - Resolve the handshake after login
GET  /auth/signin/oidc          - Hand off to the external identity provider
GET  /auth/callback/oidc        - Return leg from the identity provider
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
import structlog

from ..broker import LoginBroker, append_query
from ..config import GatewayConfig
from ..errors import GatewayError, InvalidState, MissingParameters
from ..logging import client_ip_from_headers, log_audit
from ..session import OIDCProvider, SessionManager
from .dependencies import (
    get_broker,
    get_config,
    get_identity_provider,
    get_session_manager,
)
from .schemas import LoginSessionResponse, SessionResponse, UserOut

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_SESSION_COOKIE = "login_session"
OIDC_STATE_COOKIE = "oidc_state"


def _clear_login_session(response) -> None:
    response.delete_cookie(LOGIN_SESSION_COOKIE, path="/")


def _clear_oidc_state(response) -> None:
    response.delete_cookie(OIDC_STATE_COOKIE, path="/auth")


@router.get("/initiate")
async def initiate(
    request: Request,
    app_id: Optional[str] = Query(None),
    return_url: Optional[str] = Query(None),
    broker: LoginBroker = Depends(get_broker),
    config: GatewayConfig = Depends(get_config),
):
    """
    Start a delegated login.

    Validates the app and return URL, records the pending handshake and
    sends the browser to the login surface with a ``login_session`` cookie.
    """
    client_ip = client_ip_from_headers(request.headers, fallback="anonymous")
    initiated = await broker.initiate(app_id, return_url, client_ip)

    response = RedirectResponse(config.login_path, status_code=307)
    response.set_cookie(
        LOGIN_SESSION_COOKIE,
        initiated.session_id,
        max_age=broker.session_ttl,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
        path="/",
    )
    return response


@router.get("/check-login-session", response_model=LoginSessionResponse)
async def check_login_session(
    request: Request,
    broker: LoginBroker = Depends(get_broker),
):
    """Which app and return URL the current login belongs to."""
    pending = await broker.lookup(request.cookies.get(LOGIN_SESSION_COOKIE))
    if pending is None:
        return JSONResponse({"session": None}, status_code=404)
    return pending.public_view()


@router.get("/session", response_model=SessionResponse)
async def current_session(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
):
    session = await sessions.read(request)
    if session is None:
        return JSONResponse({"user": None}, status_code=401)
    return SessionResponse(user=UserOut(**session.identity.to_dict()))


@router.post("/logout")
async def logout(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    End the authenticated session.

    Best effort: a failure while terminating is logged and reported as 500,
    it never propagates.
    """
    response = JSONResponse({"success": True})
    try:
        await sessions.terminate(request, response)
    except Exception:
        logger.exception("logout_failed")
        return JSONResponse({"error": "Logout failed"}, status_code=500)

    log_audit("auth.logout", ip=client_ip_from_headers(request.headers))
    return response


@router.get("/complete")
async def complete(
    request: Request,
    broker: LoginBroker = Depends(get_broker),
    sessions: SessionManager = Depends(get_session_manager),
    config: GatewayConfig = Depends(get_config),
):
    """
    Resolve the handshake once the user is authenticated.

    Delegated logins go back to the originating app; anything else lands on
    the gateway's own landing page.
    """
    session = await sessions.read(request)
    if session is None:
        return RedirectResponse(config.login_path, status_code=307)

    resolved = await broker.resolve(request.cookies.get(LOGIN_SESSION_COOKIE), session.identity)
    response = RedirectResponse(resolved.redirect_url, status_code=307)
    _clear_login_session(response)
    return response


def _require_provider(provider: Optional[OIDCProvider]) -> OIDCProvider:
    if provider is None:
        raise GatewayError(
            "External identity provider not configured",
            code="PROVIDER_UNCONFIGURED",
            status_code=404,
        )
    return provider


@router.get("/signin/oidc")
async def signin_oidc(
    request: Request,
    broker: LoginBroker = Depends(get_broker),
    provider: Optional[OIDCProvider] = Depends(get_identity_provider),
    config: GatewayConfig = Depends(get_config),
):
    """
    Send the browser to the identity provider, carrying an opaque state.

    The same state is pinned to this browser in an HttpOnly cookie; the
    callback only accepts it from here.
    """
    provider = _require_provider(provider)
    state = await broker.begin_external(request.cookies.get(LOGIN_SESSION_COOKIE))

    response = RedirectResponse(await provider.authorization_url(state), status_code=307)
    response.set_cookie(
        OIDC_STATE_COOKIE,
        state,
        max_age=broker.session_ttl,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
        path="/auth",
    )
    return response


@router.get("/callback/oidc")
async def callback_oidc(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    broker: LoginBroker = Depends(get_broker),
    provider: Optional[OIDCProvider] = Depends(get_identity_provider),
    sessions: SessionManager = Depends(get_session_manager),
    config: GatewayConfig = Depends(get_config),
):
    """Return leg from the identity provider."""
    provider = _require_provider(provider)
    bound_state = request.cookies.get(OIDC_STATE_COOKIE)

    if error:
        logger.warning("oidc_provider_error", error=error)
        await broker.consume_external(state, bound_state)
        response = RedirectResponse(append_query(config.login_path, error="sso_failed"), status_code=307)
        _clear_oidc_state(response)
        return response

    if not code or not state:
        raise MissingParameters()

    # Must come from the browser that started the sign-in
    external = await broker.consume_external(state, bound_state)
    if external is None:
        raise InvalidState()

    identity = await provider.exchange(code)
    resolved = await broker.resolve(external.get("sessionId"), identity)

    response = RedirectResponse(resolved.redirect_url, status_code=307)
    sessions.establish(response, identity)
    _clear_login_session(response)
    _clear_oidc_state(response)
    return response
