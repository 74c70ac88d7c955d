"""
Tests for the HTTP Surface
==========================
End-to-end flows through the FastAPI app with in-memory components.
"""

from urllib.parse import parse_qs, urlparse

import pytest
from starlette.testclient import TestClient

from sso_gateway.session import Identity, TokenSigner

TEST_SECRET = "test-secret"
APP1_HANDOFF_SECRET = "app1-development-handoff-key"
APP1_CALLBACK = "https://app1.company.com/auth/callback"
RECIPIENT = "user@example.com"


def _initiate(client, app_id="app1", return_url=APP1_CALLBACK, **kwargs):
    params = {}
    if app_id is not None:
        params["app_id"] = app_id
    if return_url is not None:
        params["return_url"] = return_url
    return client.get("/auth/initiate", params=params, follow_redirects=False, **kwargs)


def _otp_login(client, recipient=RECIPIENT):
    sent = client.post("/otp/send", json={"recipient": recipient, "channel": "email"})
    assert sent.status_code == 200
    return client.post("/otp/verify", json={"recipient": recipient, "code": sent.json()["code"]})


class FakeIdentityProvider:
    """Identity provider double that accepts any code."""

    name = "oidc"

    def __init__(self, identity: Identity):
        self.identity = identity
        self.codes = []

    async def authorization_url(self, state: str) -> str:
        return f"https://idp.example.com/authorize/?state={state}"

    async def exchange(self, code: str) -> Identity:
        self.codes.append(code)
        return self.identity


class TestDelegatedLogin:
    """Tests for the full cross-application handshake."""

    def test_full_handshake(self, client):
        """Initiate, sign in with an OTP, and land back on the client app."""
        initiated = _initiate(client)

        assert initiated.status_code == 307
        assert initiated.headers["location"] == "/login"
        cookie = initiated.headers["set-cookie"]
        assert cookie.startswith("login_session=")
        assert "HttpOnly" in cookie
        assert "Max-Age=600" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Secure" not in cookie

        pending = client.get("/auth/check-login-session")
        assert pending.status_code == 200
        body = pending.json()
        assert body["appId"] == "app1"
        assert body["returnUrl"] == APP1_CALLBACK
        assert len(body["state"]) == 64

        verified = _otp_login(client)
        assert verified.status_code == 200
        assert verified.json()["status"] == "verified"
        assert verified.json()["redirectTo"] == "/auth/complete"
        assert verified.json()["user"]["email"] == RECIPIENT

        completed = client.get("/auth/complete", follow_redirects=False)
        assert completed.status_code == 307
        location = urlparse(completed.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == APP1_CALLBACK
        query = parse_qs(location.query)
        assert query["state"] == [body["state"]]
        claims = TokenSigner(APP1_HANDOFF_SECRET, purpose="handoff").verify(query["token"][0])
        assert claims["sub"] == RECIPIENT
        assert claims["aud"] == "app1"

        gone = client.get("/auth/check-login-session")
        assert gone.status_code == 404
        assert gone.json() == {"session": None}

    def test_complete_is_single_use(self, client):
        _initiate(client)
        session_id = client.cookies.get("login_session")
        _otp_login(client)
        client.get("/auth/complete", follow_redirects=False)

        client.cookies.set("login_session", session_id)
        again = client.get("/auth/complete", follow_redirects=False)

        assert again.status_code == 307
        assert again.headers["location"] == "/profile"

    def test_complete_without_session_goes_to_login(self, client):
        _initiate(client)

        response = client.get("/auth/complete", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_direct_login_lands_on_profile(self, client):
        _otp_login(client)

        response = client.get("/auth/complete", follow_redirects=False)

        assert response.headers["location"] == "/profile"

    def test_login_session_expires(self, client, clock):
        _initiate(client)
        clock.advance(601)

        assert client.get("/auth/check-login-session").status_code == 404

    def test_check_without_cookie(self, client):
        response = client.get("/auth/check-login-session")

        assert response.status_code == 404
        assert response.json() == {"session": None}


class TestInitiateErrors:
    """Tests for rejected initiations."""

    @pytest.mark.parametrize("app_id,return_url,error", [
        (None, APP1_CALLBACK, "Missing parameters"),
        ("app1", None, "Missing parameters"),
        ("unknown", APP1_CALLBACK, "Invalid app_id"),
        ("app1", "not-a-url", "Invalid return_url format"),
        ("app1", "https://evil.example.com/auth/callback", "Invalid return_url"),
        ("app1", APP1_CALLBACK + "/", "Invalid return_url"),
    ])
    def test_rejected(self, client, app_id, return_url, error):
        response = _initiate(client, app_id, return_url)

        assert response.status_code == 400
        assert response.json()["error"] == error
        assert "login_session" not in response.headers.get("set-cookie", "")

    def test_rate_limited_per_client(self, client):
        """The 11th initiation from one address in a minute is refused."""
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        for _ in range(10):
            assert _initiate(client, headers=headers).status_code == 307

        limited = _initiate(client, headers=headers)
        assert limited.status_code == 429
        assert limited.json()["error"] == "Too many requests"
        assert int(limited.headers["Retry-After"]) > 0
        assert limited.headers["X-RateLimit-Remaining"] == "0"

        other = _initiate(client, headers={"X-Forwarded-For": "198.51.100.2"})
        assert other.status_code == 307

    def test_rate_limit_window_slides(self, client, clock):
        headers = {"X-Real-IP": "203.0.113.9"}
        for _ in range(10):
            _initiate(client, headers=headers)
        assert _initiate(client, headers=headers).status_code == 429

        clock.advance(61)
        assert _initiate(client, headers=headers).status_code == 307

    def test_store_unavailable(self, client, store):
        """Store failures surface as a generic 500."""
        from sso_gateway.errors import StoreUnavailable

        async def broken_put(key, value, ttl_seconds):
            raise StoreUnavailable("connection refused to 10.0.0.5:6379")

        store.put = broken_put
        response = _initiate(client)

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "10.0.0.5" not in response.text


class TestOTPEndpoints:
    """Tests for /otp/send and /otp/verify."""

    def test_send_mock_echoes_code_in_development(self, client):
        response = client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"})

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "OTP sent successfully (mock)"
        assert len(body["code"]) == 6

    @pytest.mark.parametrize("payload,code", [
        ({}, "VALIDATION_ERROR"),
        ({"recipient": RECIPIENT}, "VALIDATION_ERROR"),
        ({"recipient": "", "channel": "email"}, "VALIDATION_ERROR"),
        ({"recipient": RECIPIENT, "channel": "fax"}, "INVALID_CHANNEL"),
        ({"recipient": "not-an-email", "channel": "email"}, "INVALID_RECIPIENT"),
        ({"recipient": RECIPIENT, "channel": "sms"}, "INVALID_RECIPIENT"),
    ])
    def test_send_rejected(self, client, payload, code):
        response = client.post("/otp/send", json=payload)

        assert response.status_code == 400
        assert response.json()["code"] == code

    def test_verify_wrong_code(self, client):
        code = client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"}).json()["code"]
        wrong = "000000" if code != "000000" else "111111"

        response = client.post("/otp/verify", json={"recipient": RECIPIENT, "code": wrong})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid OTP. 4 attempts remaining.",
            "code": "INVALID_CODE",
            "attemptsRemaining": 4,
        }
        assert "auth_token" not in response.headers.get("set-cookie", "")

    def test_verify_accepts_numeric_code(self, client):
        code = client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"}).json()["code"]

        response = client.post("/otp/verify", json={"recipient": RECIPIENT, "code": int(code)})

        assert response.status_code == 200

    def test_verify_unknown(self, client):
        response = client.post("/otp/verify", json={"recipient": RECIPIENT, "code": "123456"})

        assert response.status_code == 400
        assert response.json()["code"] == "EXPIRED_OR_NOT_FOUND"

    def test_verify_locks_out(self, client):
        code = client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"}).json()["code"]
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(5):
            client.post("/otp/verify", json={"recipient": RECIPIENT, "code": wrong})

        response = client.post("/otp/verify", json={"recipient": RECIPIENT, "code": code})

        assert response.status_code == 400
        assert response.json()["code"] == "TOO_MANY_ATTEMPTS"
        assert response.json()["error"] == "Too many failed attempts. Please request a new OTP."

    def test_sms_login_has_no_email(self, client):
        verified = _otp_login_sms(client)

        assert verified.json()["user"] == {"id": "+14155551234", "email": None, "name": None}


def _otp_login_sms(client):
    sent = client.post("/otp/send", json={"recipient": "+14155551234", "channel": "sms"})
    return client.post("/otp/verify", json={"recipient": "+14155551234", "code": sent.json()["code"]})


class TestSessionEndpoints:
    """Tests for /auth/session and /auth/logout."""

    def test_app_handoff_key_cannot_mint_sessions(self, client):
        """A client app holding its handoff key still cannot sign gateway sessions."""
        claims = {"sub": "victim@example.com", "email": "victim@example.com", "sid": "x"}

        for purpose in ("session", "handoff"):
            forged = TokenSigner(APP1_HANDOFF_SECRET, purpose=purpose).sign(claims, 3600)
            client.cookies.set("auth_token", forged)

            response = client.get("/auth/session")
            assert response.status_code == 401

    def test_handoff_token_is_not_a_session(self, client):
        _initiate(client)
        _otp_login(client)
        completed = client.get("/auth/complete", follow_redirects=False)
        token = parse_qs(urlparse(completed.headers["location"]).query)["token"][0]

        client.cookies.clear()
        client.cookies.set("auth_token", token)
        assert client.get("/auth/session").status_code == 401

    def test_session_requires_login(self, client):
        response = client.get("/auth/session")

        assert response.status_code == 401
        assert response.json() == {"user": None}

    def test_session_after_login(self, client):
        _otp_login(client)

        response = client.get("/auth/session")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == RECIPIENT

    def test_logout_revokes_token(self, client):
        """A logged-out token is rejected even when replayed."""
        _otp_login(client)
        token = client.cookies.get("auth_token")

        response = client.post("/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True}

        client.cookies.set("auth_token", token)
        assert client.get("/auth/session").status_code == 401

    def test_logout_without_session(self, client):
        assert client.post("/auth/logout").status_code == 200

    def test_logout_failure(self, client, app, monkeypatch):
        async def broken_terminate(request, response):
            raise RuntimeError("store down")

        monkeypatch.setattr(app.state.session_manager, "terminate", broken_terminate)

        response = client.post("/auth/logout")

        assert response.status_code == 500
        assert response.json() == {"error": "Logout failed"}


class TestAccessGate:
    """Tests for the gate as wired into the app."""

    def test_root_redirects_to_login(self, client):
        response = client.get("/", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_protected_page_requires_session(self, client):
        response = client.get("/profile", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_login_page_with_session(self, client):
        _otp_login(client)

        response = client.get("/login", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/profile"


class TestAmbient:
    """Tests for health checks and security headers."""

    def test_security_headers(self, client):
        response = client.get("/health/live")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "Strict-Transport-Security" not in response.headers
        assert "Cache-Control" not in response.headers

    def test_handshake_responses_not_cached(self, client):
        """Redirects carrying handshake state must not be cached."""
        initiated = _initiate(client)
        sent = client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"})

        assert initiated.headers["Cache-Control"] == "no-store"
        assert sent.headers["Cache-Control"] == "no-store"
        assert initiated.headers["X-Frame-Options"] == "DENY"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["components"]["store"]["status"] == "connected"

    def test_ready_fails_without_store(self, client, store):
        from sso_gateway.errors import StoreUnavailable

        async def broken_ping():
            raise StoreUnavailable()

        store.ping = broken_ping

        assert client.get("/health/ready").status_code == 503
        assert client.get("/health").json()["status"] == "unhealthy"


class TestProduction:
    """Tests for production-only behaviour."""

    @pytest.fixture
    def prod_client(self, store, registry, limiter):
        from sso_gateway.app import create_app
        from sso_gateway.config import GatewayConfig
        from sso_gateway.otp import MockDelivery

        app = create_app(
            GatewayConfig(session_secret=TEST_SECRET, environment="production"),
            store=store,
            registry=registry,
            rate_limiter=limiter,
            delivery=MockDelivery(),
            identity_provider=None,
        )
        return TestClient(app)

    def test_code_never_echoed(self, prod_client):
        response = prod_client.post("/otp/send", json={"recipient": RECIPIENT, "channel": "email"})

        assert response.status_code == 200
        assert "code" not in response.json()

    def test_cookies_are_secure(self, prod_client):
        response = _initiate(prod_client)

        assert "Secure" in response.headers["set-cookie"]
        assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")


class TestExternalIdentityProvider:
    """Tests for the OIDC relay routes."""

    @pytest.fixture
    def provider(self):
        return FakeIdentityProvider(Identity(id="sub-9", email="dana@example.com", name="Dana"))

    @pytest.fixture
    def oidc_client(self, config, store, registry, limiter, provider):
        from sso_gateway.app import create_app
        from sso_gateway.otp import MockDelivery

        app = create_app(
            config,
            store=store,
            registry=registry,
            rate_limiter=limiter,
            delivery=MockDelivery(),
            identity_provider=provider,
        )
        return TestClient(app)

    def test_delegated_oidc_login(self, oidc_client, provider):
        _initiate(oidc_client)
        pending_state = oidc_client.get("/auth/check-login-session").json()["state"]

        signin = oidc_client.get("/auth/signin/oidc", follow_redirects=False)
        assert signin.status_code == 307
        assert "HttpOnly" in signin.headers["set-cookie"]
        state = parse_qs(urlparse(signin.headers["location"]).query)["state"][0]
        assert state != pending_state

        callback = oidc_client.get(
            "/auth/callback/oidc", params={"code": "c-1", "state": state}, follow_redirects=False
        )

        assert callback.status_code == 307
        query = parse_qs(urlparse(callback.headers["location"]).query)
        assert query["state"] == [pending_state]
        claims = TokenSigner(APP1_HANDOFF_SECRET, purpose="handoff").verify(query["token"][0])
        assert claims["sub"] == "sub-9"
        assert provider.codes == ["c-1"]
        assert oidc_client.get("/auth/session").json()["user"]["id"] == "sub-9"

    def test_callback_in_another_browser_is_refused(self, oidc_client, provider):
        """A state started in one browser cannot sign in a different browser."""
        _initiate(oidc_client)
        signin = oidc_client.get("/auth/signin/oidc", follow_redirects=False)
        state = parse_qs(urlparse(signin.headers["location"]).query)["state"][0]

        other_browser = TestClient(oidc_client.app)
        response = other_browser.get(
            "/auth/callback/oidc",
            params={"code": "someone-elses-code", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"
        assert provider.codes == []
        assert other_browser.get("/auth/session").status_code == 401

        # The originating browser can still finish
        own = oidc_client.get(
            "/auth/callback/oidc", params={"code": "c-1", "state": state}, follow_redirects=False
        )
        assert own.status_code == 307

    def test_mismatched_state_cookie_is_refused(self, oidc_client, provider):
        signin = oidc_client.get("/auth/signin/oidc", follow_redirects=False)
        state = parse_qs(urlparse(signin.headers["location"]).query)["state"][0]

        oidc_client.cookies.clear()
        oidc_client.cookies.set("oidc_state", "0" * 64)
        response = oidc_client.get(
            "/auth/callback/oidc", params={"code": "c-1", "state": state}, follow_redirects=False
        )

        assert response.status_code == 400
        assert provider.codes == []

    def test_state_replay_rejected(self, oidc_client):
        signin = oidc_client.get("/auth/signin/oidc", follow_redirects=False)
        state = parse_qs(urlparse(signin.headers["location"]).query)["state"][0]

        first = oidc_client.get(
            "/auth/callback/oidc", params={"code": "c-1", "state": state}, follow_redirects=False
        )
        oidc_client.cookies.set("oidc_state", state)
        replay = oidc_client.get(
            "/auth/callback/oidc", params={"code": "c-1", "state": state}, follow_redirects=False
        )

        assert first.headers["location"] == "/profile"
        assert replay.status_code == 400
        assert replay.json()["code"] == "INVALID_STATE"

    def test_provider_error(self, oidc_client):
        response = oidc_client.get(
            "/auth/callback/oidc", params={"error": "access_denied"}, follow_redirects=False
        )

        assert response.status_code == 307
        assert response.headers["location"] == "/login?error=sso_failed"

    def test_missing_code(self, oidc_client):
        response = oidc_client.get("/auth/callback/oidc", params={"state": "x"}, follow_redirects=False)

        assert response.status_code == 400

    def test_no_provider_configured(self, client):
        response = client.get("/auth/signin/oidc", follow_redirects=False)

        assert response.status_code == 404
        assert response.json()["code"] == "PROVIDER_UNCONFIGURED"
