"""
Tests for the Access Gate
=========================
"""

import pytest
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from sso_gateway.gate import AccessGateMiddleware


def _page(request):
    return PlainTextResponse(request.url.path)


async def _cookie_reader(request):
    return "session" if request.cookies.get("auth_token") == "valid" else None


@pytest.fixture
def gated_client():
    app = Starlette(routes=[
        Route("/", _page),
        Route("/login", _page),
        Route("/profile", _page),
        Route("/settings/keys", _page),
        Route("/auth/initiate", _page),
        Route("/otp/send", _page),
        Route("/health", _page),
        Route("/loginx", _page),
    ])
    app.add_middleware(AccessGateMiddleware, session_reader=_cookie_reader)
    return TestClient(app)


class TestAccessGate:
    """Tests for per-navigation redirects."""

    @pytest.mark.parametrize("path", ["/profile", "/settings/keys", "/loginx"])
    def test_protected_without_session(self, gated_client, path):
        """Should redirect to the login page."""
        response = gated_client.get(path, follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_protected_with_session(self, gated_client):
        gated_client.cookies.set("auth_token", "valid")

        response = gated_client.get("/profile", follow_redirects=False)

        assert response.status_code == 200
        assert response.text == "/profile"

    def test_login_with_session_goes_to_landing(self, gated_client):
        gated_client.cookies.set("auth_token", "valid")

        response = gated_client.get("/login", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/profile"

    @pytest.mark.parametrize("path", ["/", "/login", "/auth/initiate", "/otp/send", "/health"])
    def test_public_without_session(self, gated_client, path):
        response = gated_client.get(path, follow_redirects=False)

        assert response.status_code == 200

    def test_forged_cookie_is_not_a_session(self, gated_client):
        gated_client.cookies.set("auth_token", "forged")

        response = gated_client.get("/profile", follow_redirects=False)
        assert response.status_code == 307

    def test_is_public_path_matches_segments(self):
        gate = AccessGateMiddleware(Starlette(), session_reader=_cookie_reader)

        assert gate.is_public_path("/auth")
        assert gate.is_public_path("/auth/session")
        assert not gate.is_public_path("/authz")
        assert not gate.is_public_path("/profile")
