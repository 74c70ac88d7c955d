"""
Application Factory
===================
Wires the registry, state store, rate limiter, OTP engine, broker and
session layer into a FastAPI app.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
import redis.asyncio as aioredis
import structlog

from . import __version__
from .api import auth_router, otp_router
from .broker import LoginBroker
from .config import GatewayConfig
from .errors import register_exception_handlers
from .gate import AccessGateMiddleware
from .health import create_health_router
from .logging import RequestLoggingMiddleware
from .otp import BaseDeliveryChannel, OTPConfig, OTPEngine, build_delivery
from .rate_limit import RateLimiter, SlidingWindowLimiter
from .registry import AppRegistry, load_registry
from .security_headers import SecurityHeadersMiddleware
from .session import OIDCProvider, SessionManager
from .store import EphemeralStore, RedisStateStore

logger = structlog.get_logger(__name__)

# Distinguishes "not passed" from an explicit None (limiter disabled)
_DEFAULT = object()


def build_rate_limiter(config: GatewayConfig) -> Optional[RateLimiter]:
    """Sliding window limiter, or None (fail-open) without a backend URL."""
    if not config.rate_limit_redis_url:
        return None
    client = aioredis.from_url(
        config.rate_limit_redis_url,
        decode_responses=True,
        socket_timeout=config.store_timeout,
        socket_connect_timeout=config.store_timeout,
    )
    return SlidingWindowLimiter(
        client,
        rate=config.rate_limit_requests,
        window=config.rate_limit_window,
    )


def create_app(
    config: Optional[GatewayConfig] = None,
    *,
    store: Optional[EphemeralStore] = None,
    registry: Optional[AppRegistry] = None,
    rate_limiter=_DEFAULT,
    delivery: Optional[BaseDeliveryChannel] = None,
    identity_provider=_DEFAULT,
) -> FastAPI:
    """
    Build the gateway app.

    Every component can be injected; anything omitted is built from
    ``config``. Pass ``rate_limiter=None`` to run without a limiter and
    ``identity_provider=None`` to disable external login.
    """
    config = config or GatewayConfig.from_env()

    store = store or RedisStateStore.from_url(config.redis_url, timeout=config.store_timeout)
    registry = registry or load_registry(config.apps_file)
    if rate_limiter is _DEFAULT:
        rate_limiter = build_rate_limiter(config)
    delivery = delivery or build_delivery(
        config.otp_provider,
        config.otp_external_service_url,
        timeout=config.delivery_timeout,
    )
    if identity_provider is _DEFAULT:
        identity_provider = (
            OIDCProvider(config.oidc, timeout=config.delivery_timeout) if config.oidc else None
        )

    session_manager = SessionManager(
        store,
        secret=config.session_secret,
        max_age=config.session_max_age,
        secure_cookies=config.is_production,
    )
    broker = LoginBroker(
        registry=registry,
        store=store,
        rate_limiter=rate_limiter,
        session_ttl=config.login_session_ttl,
        handoff_ttl=config.handoff_ttl,
        default_destination=config.landing_path,
    )
    otp_engine = OTPEngine(
        store,
        delivery,
        OTPConfig(
            expiry_seconds=config.otp_ttl,
            max_attempts=config.otp_max_attempts,
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "gateway_started",
            environment=config.environment,
            otp_provider=delivery.name,
            rate_limiter=type(rate_limiter).__name__ if rate_limiter else None,
            identity_provider=identity_provider.name if identity_provider else None,
        )
        yield
        await delivery.close()
        limiter_redis = getattr(rate_limiter, "redis", None)
        if limiter_redis is not None:
            await limiter_redis.aclose()
        await store.close()

    app = FastAPI(title="SSO Gateway", version=__version__, lifespan=lifespan)

    app.state.config = config
    app.state.store = store
    app.state.registry = registry
    app.state.broker = broker
    app.state.otp_engine = otp_engine
    app.state.session_manager = session_manager
    app.state.identity_provider = identity_provider

    register_exception_handlers(app)

    app.include_router(create_health_router(config.service_name, __version__))
    app.include_router(auth_router)
    app.include_router(otp_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(config.login_path, status_code=307)

    # Last added runs first: logging wraps headers wraps the gate
    app.add_middleware(
        AccessGateMiddleware,
        session_reader=session_manager.read,
        login_path=config.login_path,
        landing_path=config.landing_path,
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=config.is_production)
    app.add_middleware(RequestLoggingMiddleware)

    return app
