"""
SSO Gateway
===========
Central login portal brokering delegated logins for client applications,
with one-time-passcode sign-in.
"""

__version__ = "0.1.0"

from sso_gateway.config import GatewayConfig, OIDCConfig
from sso_gateway.errors import (
    GatewayError,
    ValidationError,
    MissingParameters,
    InvalidApp,
    InvalidReturnUrl,
    InvalidRecipient,
    RateLimited,
    TooManyRequests,
    UpstreamFailure,
    DeliveryFailed,
    ChannelUnconfigured,
    StoreUnavailable,
)
from sso_gateway.registry import AppConfig, StaticAppRegistry, load_registry
from sso_gateway.store import InMemoryStateStore, RedisStateStore
from sso_gateway.rate_limit import InMemorySlidingWindowLimiter, SlidingWindowLimiter, RateLimitInfo
from sso_gateway.otp import OTPEngine, OTPConfig, OTPRecord, OTPChannel, VerificationResult, VerificationFailure
from sso_gateway.broker import LoginBroker, PendingLoginState
from sso_gateway.session import Identity, SessionManager, TokenSigner, OIDCProvider
from sso_gateway.gate import AccessGateMiddleware
from sso_gateway.app import create_app

__all__ = [
    "__version__",
    # Config
    "GatewayConfig",
    "OIDCConfig",
    # Errors
    "GatewayError",
    "ValidationError",
    "MissingParameters",
    "InvalidApp",
    "InvalidReturnUrl",
    "InvalidRecipient",
    "RateLimited",
    "TooManyRequests",
    "UpstreamFailure",
    "DeliveryFailed",
    "ChannelUnconfigured",
    "StoreUnavailable",
    # Registry
    "AppConfig",
    "StaticAppRegistry",
    "load_registry",
    # Store
    "InMemoryStateStore",
    "RedisStateStore",
    # Rate limiting
    "InMemorySlidingWindowLimiter",
    "SlidingWindowLimiter",
    "RateLimitInfo",
    # OTP
    "OTPEngine",
    "OTPConfig",
    "OTPRecord",
    "OTPChannel",
    "VerificationResult",
    "VerificationFailure",
    # Broker
    "LoginBroker",
    "PendingLoginState",
    # Session
    "Identity",
    "SessionManager",
    "TokenSigner",
    "OIDCProvider",
    # Gate
    "AccessGateMiddleware",
    # App
    "create_app",
]
