"""Authentication endpoint tests."""

from unittest.mock import AsyncMock

from conftest import TEST_PASSWORD, last_emailed_token
from httpx import AsyncClient

from fitquest.models import User
from fitquest.services.accounts import FORGOT_PASSWORD_MESSAGE
from fitquest.services.rate_limit import RATE_LIMIT_POLICIES, RateLimitType


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD) -> dict:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


async def test_register(client: AsyncClient, email_backend: AsyncMock):
    response = await client.post(
        "/api/auth/register",
        json={"email": "runner@example.com", "password": TEST_PASSWORD},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"]
    assert data["message"].startswith("Registration successful")
    assert "password" not in data
    email_backend.send.assert_called_once()


async def test_register_duplicate(client: AsyncClient, unverified_user: User):
    response = await client.post(
        "/api/auth/register",
        json={"email": unverified_user.email, "password": TEST_PASSWORD},
    )

    assert response.status_code == 409
    assert response.json() == {"detail": "Email already registered", "code": "already_exists"}


async def test_register_validates_input(client: AsyncClient):
    bad_email = await client.post(
        "/api/auth/register", json={"email": "not-an-email", "password": TEST_PASSWORD}
    )
    short_password = await client.post(
        "/api/auth/register", json={"email": "runner@example.com", "password": "short"}
    )

    assert bad_email.status_code == 422
    assert short_password.status_code == 422


async def test_verify_email(client: AsyncClient, email_backend: AsyncMock, unverified_user: User):
    token = last_emailed_token(email_backend)

    response = await client.post(
        "/api/auth/verify-email", json={"token": token, "email": unverified_user.email}
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully. You can now log in."


async def test_verify_email_errors(client: AsyncClient, unverified_user: User):
    bad_token = await client.post(
        "/api/auth/verify-email", json={"token": "0" * 64, "email": unverified_user.email}
    )
    unknown = await client.post(
        "/api/auth/verify-email", json={"token": "0" * 64, "email": "nobody@example.com"}
    )

    assert bad_token.status_code == 400
    assert bad_token.json()["code"] == "invalid_or_expired"
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "not_found"


async def test_verify_email_already_verified(client: AsyncClient, user: User):
    response = await client.post(
        "/api/auth/verify-email", json={"token": "0" * 64, "email": user.email}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "already_verified"


async def test_resend_verification(
    client: AsyncClient, email_backend: AsyncMock, unverified_user: User
):
    first = last_emailed_token(email_backend)

    response = await client.post(
        "/api/auth/resend-verification", json={"email": unverified_user.email}
    )

    assert response.status_code == 200
    assert last_emailed_token(email_backend) != first


async def test_login_unverified(client: AsyncClient, unverified_user: User):
    response = await client.post(
        "/api/auth/login", json={"email": unverified_user.email, "password": TEST_PASSWORD}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "email_not_verified"


async def test_login_wrong_password_matches_unknown_email(client: AsyncClient, user: User):
    wrong_password = await client.post(
        "/api/auth/login", json={"email": user.email, "password": "wrong-password"}
    )
    unknown_email = await client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD}
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


async def test_login_and_me(client: AsyncClient, user: User):
    data = await login(client, user.email)

    assert data["token_type"] == "bearer"
    assert data["needs_quiz"] is True
    assert data["user"] == {
        "id": user.id,
        "email": user.email,
        "role": "user",
        "is_verified": True,
    }

    response = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert response.status_code == 200
    assert response.json()["id"] == user.id


async def test_me_requires_access_token(client: AsyncClient, user: User):
    data = await login(client, user.email)

    missing = await client.get("/api/auth/me")
    garbage = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    refresh_as_access = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {data['refresh_token']}"}
    )

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Not authenticated"
    assert garbage.status_code == 401
    assert garbage.json()["detail"] == "Invalid or expired token"
    assert refresh_as_access.status_code == 401


async def test_refresh_and_logout(client: AsyncClient, user: User):
    data = await login(client, user.email)

    refreshed = await client.post(
        "/api/auth/refresh", json={"refresh_token": data["refresh_token"]}
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["token_type"] == "bearer"

    logout = await client.post("/api/auth/logout", json={"refresh_token": data["refresh_token"]})
    assert logout.status_code == 200
    assert logout.json() == {"message": "Logged out successfully"}

    after = await client.post("/api/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert after.status_code == 401
    assert after.json() == {"detail": "Invalid refresh token", "code": "invalid_token"}


async def test_logout_unknown_token(client: AsyncClient):
    response = await client.post("/api/auth/logout", json={"refresh_token": "not-a-token"})
    assert response.status_code == 200


async def test_forgot_password_does_not_reveal_accounts(
    client: AsyncClient, email_backend: AsyncMock, user: User
):
    email_backend.send.reset_mock()

    known = await client.post("/api/auth/forgot-password", json={"email": user.email})
    unknown = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json() == {"message": FORGOT_PASSWORD_MESSAGE}
    email_backend.send.assert_called_once()


async def test_reset_password(client: AsyncClient, email_backend: AsyncMock, user: User):
    session_tokens = await login(client, user.email)
    await client.post("/api/auth/forgot-password", json={"email": user.email})
    token = last_emailed_token(email_backend)

    response = await client.post(
        "/api/auth/reset-password",
        json={"email": user.email, "token": token, "new_password": "new-correct-horse"},
    )

    assert response.status_code == 200
    revoked = await client.post(
        "/api/auth/refresh", json={"refresh_token": session_tokens["refresh_token"]}
    )
    assert revoked.status_code == 401
    await login(client, user.email, "new-correct-horse")

    replay = await client.post(
        "/api/auth/reset-password",
        json={"email": user.email, "token": token, "new_password": "another-password"},
    )
    assert replay.status_code == 400
    assert replay.json()["code"] == "invalid_or_expired"


async def test_reset_password_unknown_email(client: AsyncClient):
    response = await client.post(
        "/api/auth/reset-password",
        json={"email": "nobody@example.com", "token": "0" * 64, "new_password": "new-password"},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid reset token", "code": "invalid_token"}


async def test_email_endpoints_are_rate_limited(client: AsyncClient):
    limit = RATE_LIMIT_POLICIES[RateLimitType.EMAIL].requests

    for _ in range(limit):
        response = await client.post(
            "/api/auth/forgot-password", json={"email": "nobody@example.com"}
        )
        assert response.status_code == 200

    response = await client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.status_code == 429
    assert "Retry-After" in response.headers
    assert response.headers["X-RateLimit-Remaining"] == "0"


async def test_request_id_is_echoed(client: AsyncClient):
    generated = await client.get("/api/health")
    forwarded = await client.get("/api/health", headers={"X-Request-ID": "req-123"})

    assert len(generated.headers["X-Request-ID"]) == 32
    assert forwarded.headers["X-Request-ID"] == "req-123"
