"""
Shared fixtures: an in-memory gateway with a controllable clock.
"""

import pytest
from starlette.testclient import TestClient

from sso_gateway.app import create_app
from sso_gateway.config import GatewayConfig
from sso_gateway.otp import MockDelivery
from sso_gateway.rate_limit import InMemorySlidingWindowLimiter
from sso_gateway.registry import load_registry
from sso_gateway.store import InMemoryStateStore

TEST_SECRET = "test-secret"
APP1_CALLBACK = "https://app1.company.com/auth/callback"


class FakeClock:
    """Monotonic test clock, advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStateStore(clock=clock)


@pytest.fixture
def registry():
    return load_registry()


@pytest.fixture
def limiter(clock):
    return InMemorySlidingWindowLimiter(rate=10, window=60, clock=clock)


@pytest.fixture
def config():
    return GatewayConfig(session_secret=TEST_SECRET, environment="development")


@pytest.fixture
def app(config, store, registry, limiter):
    return create_app(
        config,
        store=store,
        registry=registry,
        rate_limiter=limiter,
        delivery=MockDelivery(),
        identity_provider=None,
    )


@pytest.fixture
def client(app):
    return TestClient(app)
