"""
ScentMatch Backend — Auth & App Endpoint Tests
================================================

What:  HTTP contract of /auth/*, /health, and the global error mapping.
How:   HTTPX AsyncClient over ASGITransport against an in-memory database.

What we test:
    ✅ Status codes and camelCase bodies for signup / login / verify
    ✅ Error bodies: {"success": false, "error": ..., "requestId": ...}
    ✅ Session cookie attributes, /auth/me, and /auth/logout
    ✅ Codes are never echoed in production; failed delivery still signs up
    ✅ Stored identifiers are SHA-256 hashes of the normalized values
    ✅ Malformed bodies become 400, internal failures a generic 500
    ✅ Request IDs are echoed; /health reports the database
"""

import hashlib

import pytest
from sqlalchemy import func, select

from scentmatch.config import settings
from scentmatch.exceptions import DatabaseError
from scentmatch.models import LoginCode, Session, User


def _session_token(response) -> str:
    set_cookie = response.headers["set-cookie"]
    name, _, rest = set_cookie.partition("=")
    assert name == settings.session_cookie_name
    return rest.split(";", 1)[0]


async def _signup(client, email="a@test.com", phone="555-123-4567"):
    response = await client.post("/auth/signup", json={"email": email, "phone": phone})
    assert response.status_code == 201
    return response.json()


async def _login_session(client) -> str:
    body = await _signup(client)
    response = await client.post(
        "/auth/verify", json={"userId": body["userId"], "code": body["otpCode"]}
    )
    assert response.status_code == 200
    client.cookies.clear()
    return _session_token(response)


class TestSignupEndpoint:

    @pytest.mark.asyncio
    async def test_signup_returns_201_with_user_id_and_code(self, test_client, notifier):
        response = await test_client.post(
            "/auth/signup", json={"email": "a@test.com", "phone": "555-123-4567"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["userId"]
        assert len(body["otpCode"]) == 6
        assert body["message"]
        assert notifier.sent == [("555-123-4567", body["otpCode"])]

    @pytest.mark.asyncio
    async def test_duplicate_signup_returns_409(self, test_client):
        await _signup(test_client)

        response = await test_client.post(
            "/auth/signup", json={"email": "A@Test.com", "phone": "000"}
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Account with this email already exists"
        assert body["requestId"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"email": "a@test.com"}, {"phone": "555"}, {"email": " ", "phone": "555"}])
    async def test_missing_fields_return_400(self, test_client, payload):
        response = await test_client.post("/auth/signup", json=payload)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Email and phone are required",
            "requestId": response.headers["X-Request-ID"],
        }

    @pytest.mark.asyncio
    async def test_malformed_json_returns_400(self, test_client):
        response = await test_client.post(
            "/auth/signup",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_code_is_hidden_when_exposure_disabled(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "expose_otp_code", False)

        response = await test_client.post(
            "/auth/signup", json={"email": "a@test.com", "phone": "555"}
        )

        assert response.status_code == 201
        assert "otpCode" not in response.json()

    @pytest.mark.asyncio
    async def test_code_is_never_returned_in_production(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        assert settings.expose_otp_code is True

        signup = await test_client.post(
            "/auth/signup", json={"email": "a@test.com", "phone": "555"}
        )
        login = await test_client.post("/auth/login", json={"email": "a@test.com"})

        assert signup.status_code == 201
        assert "otpCode" not in signup.json()
        assert login.status_code == 200
        assert "otpCode" not in login.json()

    @pytest.mark.asyncio
    async def test_failed_delivery_still_creates_account(self, database, failing_notifier, notifier):
        from httpx import ASGITransport, AsyncClient

        from scentmatch.main import create_app

        app = create_app(database=database, notifier=failing_notifier)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(
                "/auth/signup", json={"email": "a@test.com", "phone": "555"}
            )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "The login code could not be sent. Please request a new one."

        app = create_app(database=database, notifier=notifier)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            login = await client.post("/auth/login", json={"email": "a@test.com"})
        assert login.status_code == 200
        assert login.json()["userId"] == body["userId"]
        assert notifier.sent == [("a@test.com", login.json()["otpCode"])]


class TestLoginEndpoint:

    @pytest.mark.asyncio
    async def test_login_returns_new_code(self, test_client, notifier):
        signup = await _signup(test_client)

        response = await test_client.post("/auth/login", json={"email": " A@TEST.COM"})

        assert response.status_code == 200
        body = response.json()
        assert body["userId"] == signup["userId"]
        assert notifier.sent[-1] == (" A@TEST.COM", body["otpCode"])

    @pytest.mark.asyncio
    async def test_unknown_email_returns_404(self, test_client):
        response = await test_client.post("/auth/login", json={"email": "nobody@test.com"})

        assert response.status_code == 404
        assert response.json()["error"] == "No account found with this email"

    @pytest.mark.asyncio
    async def test_missing_email_returns_400(self, test_client):
        response = await test_client.post("/auth/login", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Email is required"


class TestVerifyEndpoint:

    @pytest.mark.asyncio
    async def test_verify_sets_session_cookie(self, test_client):
        body = await _signup(test_client)

        response = await test_client.post(
            "/auth/verify", json={"userId": body["userId"], "code": body["otpCode"]}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie
        assert "max-age=2592000" in set_cookie
        assert "path=/" in set_cookie
        # Development runs over plain HTTP
        assert "; secure" not in set_cookie
        assert _session_token(response)

    @pytest.mark.asyncio
    async def test_code_cannot_be_reused(self, test_client):
        body = await _signup(test_client)
        payload = {"userId": body["userId"], "code": body["otpCode"]}

        first = await test_client.post("/auth/verify", json=payload)
        second = await test_client.post("/auth/verify", json=payload)

        assert first.status_code == 200
        assert second.status_code == 401
        assert second.json()["error"] == "Invalid or expired code"
        assert "set-cookie" not in second.headers

    @pytest.mark.asyncio
    async def test_wrong_code_returns_401(self, test_client):
        body = await _signup(test_client)
        wrong = str((int(body["otpCode"]) + 1) % 1_000_000).zfill(6)

        response = await test_client.post(
            "/auth/verify", json={"userId": body["userId"], "code": wrong}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_signup_login_and_wrong_code_end_to_end(self, test_client, database):
        signup = await _signup(test_client, email="A@Test.com", phone="(555) 123-4567")

        async with database.session() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert str(user.id) == signup["userId"]
        assert user.email_hash == hashlib.sha256(b"a@test.com").hexdigest()
        assert user.phone_hash == hashlib.sha256(b"5551234567").hexdigest()

        login = await test_client.post("/auth/login", json={"email": "a@test.com "})
        assert login.status_code == 200
        assert login.json()["userId"] == signup["userId"]

        wrong = str((int(login.json()["otpCode"]) + 1) % 1_000_000).zfill(6)
        if wrong == signup["otpCode"]:
            wrong = str((int(wrong) + 1) % 1_000_000).zfill(6)
        response = await test_client.post(
            "/auth/verify", json={"userId": signup["userId"], "code": wrong}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired code"

        async with database.session() as session:
            consumed = await session.scalar(
                select(func.count()).select_from(LoginCode).where(LoginCode.consumed.is_(True))
            )
            sessions = await session.scalar(select(func.count()).select_from(Session))
        assert consumed == 0
        assert sessions == 0

    @pytest.mark.asyncio
    async def test_missing_fields_return_400(self, test_client):
        response = await test_client.post("/auth/verify", json={"code": "123456"})

        assert response.status_code == 400
        assert response.json()["error"] == "User ID and code are required"

    @pytest.mark.asyncio
    async def test_malformed_user_id_returns_400(self, test_client):
        response = await test_client.post(
            "/auth/verify", json={"userId": "not-a-uuid", "code": "123456"}
        )

        assert response.status_code == 400


class TestSessionEndpoints:

    @pytest.mark.asyncio
    async def test_me_returns_current_user(self, test_client):
        token = await _login_session(test_client)

        response = await test_client.get(
            "/auth/me", headers={"Cookie": f"{settings.session_cookie_name}={token}"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["userId"]
        assert body["createdAt"]

    @pytest.mark.asyncio
    async def test_me_without_cookie_returns_401(self, test_client):
        response = await test_client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Not authenticated"

    @pytest.mark.asyncio
    async def test_forged_cookie_returns_401(self, test_client):
        response = await test_client.get(
            "/auth/me", headers={"Cookie": f"{settings.session_cookie_name}=forged"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_invalidates_session(self, test_client):
        token = await _login_session(test_client)
        cookie = {"Cookie": f"{settings.session_cookie_name}={token}"}

        response = await test_client.post("/auth/logout", headers=cookie)
        assert response.status_code == 200
        assert "max-age=0" in response.headers["set-cookie"].lower()
        test_client.cookies.clear()

        after = await test_client.get("/auth/me", headers=cookie)
        assert after.status_code == 401


class TestAppPlumbing:

    @pytest.mark.asyncio
    async def test_health_reports_connected_database(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"
        assert "uptimeSeconds" in body

    @pytest.mark.asyncio
    async def test_client_request_id_is_echoed(self, test_client):
        response = await test_client.post(
            "/auth/login", json={"email": "nobody@test.com"}, headers={"X-Request-ID": "trace-123"}
        )

        assert response.headers["X-Request-ID"] == "trace-123"
        assert response.json()["requestId"] == "trace-123"

    @pytest.mark.asyncio
    async def test_database_error_returns_generic_500(self, database, notifier):
        from httpx import ASGITransport, AsyncClient

        from scentmatch.main import create_app

        app = create_app(database=database, notifier=notifier)

        @app.get("/boom")
        async def boom():
            raise DatabaseError(context={"sql": "SELECT secret FROM users"})

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert "secret" not in response.text
