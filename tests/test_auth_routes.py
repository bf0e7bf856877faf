"""
Tests for the authentication API.

Signup, login, the current-user endpoint and the password reset flow,
against an in-memory database.
"""

import pytest
from sqlalchemy import select

from simplegrowth.models import AuditLog, User, VerificationToken


# =============================================================================
# Signup / Login
# =============================================================================

class TestSignup:
    """Tests for POST /api/auth/signup."""

    @pytest.mark.asyncio
    async def test_signup_creates_user_and_token(self, client, session_factory, email_service):
        response = await client.post("/api/auth/signup", json={
            "name": "New Person",
            "email": "new@example.com",
            "password": "long-enough",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"]
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["role"] == "user"
        assert body["user"]["organization_id"] is None

        email_service.send_welcome_email.assert_awaited_once_with("new@example.com", "New Person")

        async with session_factory() as check:
            user = (await check.execute(select(User))).scalar_one()
            assert user.hashed_password != "long-enough"
            actions = (await check.execute(select(AuditLog.action))).scalars().all()
            assert actions == ["user_registered"]

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, client, make_user):
        await make_user(email="taken@example.com")

        response = await client.post("/api/auth/signup", json={
            "name": "Someone",
            "email": "taken@example.com",
            "password": "long-enough",
        })

        assert response.status_code == 400
        assert response.json()["detail"] == "An account with this email already exists"

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client):
        response = await client.post("/api/auth/signup", json={
            "name": "Someone",
            "email": "short@example.com",
            "password": "short",
        })

        assert response.status_code == 422


class TestLogin:
    """Tests for POST /api/auth/login and GET /api/auth/me."""

    @pytest.mark.asyncio
    async def test_login_success(self, client, make_user):
        await make_user(email="owner@example.com", password="correct-horse")

        response = await client.post("/api/auth/login", json={
            "email": "owner@example.com",
            "password": "correct-horse",
        })

        assert response.status_code == 200
        token = response.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "owner@example.com"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, make_user):
        await make_user(email="owner@example.com", password="correct-horse")

        response = await client.post("/api/auth/login", json={
            "email": "owner@example.com",
            "password": "battery-staple",
        })

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_email_same_error(self, client):
        response = await client.post("/api/auth/login", json={
            "email": "nobody@example.com",
            "password": "whatever1",
        })

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_refresh_returns_new_token(self, client, member, headers_for):
        response = await client.post("/api/auth/refresh", headers=headers_for(member))

        assert response.status_code == 200
        assert response.json()["user"]["id"] == member.id


# =============================================================================
# Password reset
# =============================================================================

class TestPasswordReset:
    """Tests for the forgot/reset password flow."""

    @pytest.mark.asyncio
    async def test_unknown_email_gets_same_answer(self, client, email_service):
        response = await client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

        assert response.status_code == 200
        assert response.json()["message"].startswith("If an account exists")
        email_service.send_password_reset_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_reset_flow(self, client, make_user, session_factory, email_service):
        await make_user(email="owner@example.com", password="correct-horse")

        response = await client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
        assert response.status_code == 200

        email, token = email_service.send_password_reset_email.call_args.args
        assert email == "owner@example.com"

        check = await client.get("/api/auth/reset-password", params={"token": token})
        assert check.json() == {"valid": True}

        reset = await client.post("/api/auth/reset-password", json={"token": token, "password": "new-password"})
        assert reset.status_code == 200

        login = await client.post("/api/auth/login", json={
            "email": "owner@example.com",
            "password": "new-password",
        })
        assert login.status_code == 200
        assert login.json()["user"]["email_verified"] is not None

        # Tokens are single use
        again = await client.post("/api/auth/reset-password", json={"token": token, "password": "another-one"})
        assert again.status_code == 400

        async with session_factory() as fresh:
            remaining = (await fresh.execute(select(VerificationToken))).scalars().all()
            assert remaining == []

    @pytest.mark.asyncio
    async def test_second_request_replaces_token(self, client, make_user, session_factory, email_service):
        await make_user(email="owner@example.com")

        await client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
        await client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})

        async with session_factory() as fresh:
            tokens = (await fresh.execute(select(VerificationToken))).scalars().all()
            assert len(tokens) == 1
            assert tokens[0].identifier == "password_reset:owner@example.com"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.post("/api/auth/reset-password", json={"token": "nope", "password": "new-password"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or expired reset token"
