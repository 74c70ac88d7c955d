"""
Gateway Configuration
=====================
Runtime settings for the SSO gateway, read from the environment.
"""

import os
import secrets
from dataclasses import dataclass, field
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class OIDCConfig:
    """Connection details for the external identity provider."""
    issuer: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scope: str = "openid email profile"
    # Overrides the issuer-derived discovery document location
    metadata_url: Optional[str] = None

    @property
    def server_metadata_url(self) -> str:
        if self.metadata_url:
            return self.metadata_url
        return f"{self.issuer.rstrip('/')}/.well-known/openid-configuration"


@dataclass
class GatewayConfig:
    """Configuration for the SSO gateway."""
    service_name: str = "sso-gateway"
    environment: str = "development"
    log_level: str = "INFO"

    # Ephemeral state store
    redis_url: str = "redis://localhost:6379/0"
    store_timeout: float = 2.0

    # Handshake
    login_session_ttl: int = 600
    login_path: str = "/login"
    landing_path: str = "/profile"
    apps_file: Optional[str] = None

    # OTP
    otp_ttl: int = 300
    otp_max_attempts: int = 5
    otp_provider: str = "mock"
    otp_external_service_url: Optional[str] = None
    delivery_timeout: float = 10.0

    # Rate limiting (None disables the limiter entirely)
    rate_limit_redis_url: Optional[str] = None
    rate_limit_requests: int = 10
    rate_limit_window: int = 60

    # Authenticated session
    session_secret: str = field(default_factory=lambda: secrets.token_hex(32))
    session_max_age: int = 3600
    handoff_ttl: int = 60

    oidc: Optional[OIDCConfig] = None

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev")

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build configuration from environment variables."""
        oidc = None
        if os.environ.get("OIDC_ISSUER") and os.environ.get("OIDC_CLIENT_ID"):
            oidc = OIDCConfig(
                issuer=os.environ["OIDC_ISSUER"],
                client_id=os.environ["OIDC_CLIENT_ID"],
                client_secret=os.environ.get("OIDC_CLIENT_SECRET", ""),
                redirect_uri=os.environ.get(
                    "OIDC_REDIRECT_URI", "http://localhost:8000/auth/callback/oidc"
                ),
                scope=os.environ.get("OIDC_SCOPE", "openid email profile"),
                metadata_url=os.environ.get("OIDC_METADATA_URL") or None,
            )

        kwargs = {}
        if os.environ.get("SESSION_SECRET"):
            kwargs["session_secret"] = os.environ["SESSION_SECRET"]

        return cls(
            service_name=os.environ.get("SERVICE_NAME", "sso-gateway"),
            environment=os.environ.get("ENVIRONMENT", "development"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            store_timeout=_env_float("STORE_TIMEOUT_SECONDS", 2.0),
            login_session_ttl=_env_int("LOGIN_SESSION_TTL", 600),
            login_path=os.environ.get("LOGIN_PATH", "/login"),
            landing_path=os.environ.get("LANDING_PATH", "/profile"),
            apps_file=os.environ.get("APPS_CONFIG_FILE") or None,
            otp_ttl=_env_int("OTP_TTL", 300),
            otp_max_attempts=_env_int("OTP_MAX_ATTEMPTS", 5),
            otp_provider=os.environ.get("OTP_PROVIDER", "mock"),
            otp_external_service_url=os.environ.get("OTP_EXTERNAL_SERVICE_URL") or None,
            delivery_timeout=_env_float("OTP_DELIVERY_TIMEOUT", 10.0),
            rate_limit_redis_url=os.environ.get("RATE_LIMIT_REDIS_URL") or None,
            rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 10),
            rate_limit_window=_env_int("RATE_LIMIT_WINDOW", 60),
            session_max_age=_env_int("SESSION_MAX_AGE", 3600),
            oidc=oidc,
            **kwargs,
        )
