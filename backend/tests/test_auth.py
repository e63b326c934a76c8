"""Tests for authentication and security utilities."""

from datetime import timedelta

import jwt
import pytest
from fastapi import HTTPException

from core.exceptions import ConflictError, UnauthorizedError
from core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
    verify_token,
)
from db.models.role import Role
from services.auth_service import AuthService, primary_role


@pytest.mark.unit
class TestPasswordHashing:
    """Password hash/verify tests."""

    def test_hash_and_verify(self):
        raw = "SuperSecret123!"
        hashed = hash_password(raw)
        assert hashed != raw
        assert verify_password(raw, hashed) is True

    def test_wrong_password_rejected(self):
        hashed = hash_password("correct")
        assert verify_password("wrong", hashed) is False

    def test_different_hashes_for_same_password(self):
        """Each call should produce a different hash (salt)."""
        assert hash_password("same") != hash_password("same")


@pytest.mark.unit
class TestJWT:
    """JWT token creation and decoding tests."""

    def test_create_and_decode_token(self):
        token = create_access_token(user_id="user-123", username="alice")
        payload = decode_access_token(token)
        assert payload["sub"] == "user-123"
        assert payload["username"] == "alice"
        assert payload["type"] == "access"

    def test_token_carries_no_permissions(self):
        payload = decode_access_token(create_access_token(user_id="u1", username="bob"))
        assert "permissions" not in payload
        assert "roles" not in payload

    def test_invalid_token_raises(self):
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token("not.a.valid.token")

    def test_verify_token(self):
        token = verify_token(create_access_token(user_id="u1", username="bob"))
        assert token.sub == "u1"
        assert token.username == "bob"

    def test_expired_token_is_401(self):
        token = create_access_token(
            user_id="u1", username="bob", expires_delta=timedelta(seconds=-5)
        )
        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_foreign_signature_is_401(self):
        token = jwt.encode({"sub": "u1", "username": "bob"}, "another-key", algorithm="HS256")
        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)
        assert exc_info.value.detail == "Invalid token"


@pytest.mark.unit
class TestPrimaryRole:
    def test_priority_order(self):
        roles = [Role(name="Viewer"), Role(name="Manager"), Role(name="Supervisor")]
        assert primary_role(roles).name == "Manager"

    def test_custom_roles_fall_back_to_first(self):
        roles = [Role(name="Supervisor"), Role(name="Operator")]
        assert primary_role(roles).name == "Supervisor"

    def test_no_roles(self):
        assert primary_role([]) is None


@pytest.mark.integration
class TestAuthService:

    async def test_register_grants_default_role(self, db_session, seeded):
        svc = AuthService(db_session)

        user = await svc.register("carol", "carol@example.com", "Secret123", "Carol")
        profile = await svc.profile(user.id)

        assert profile["role"] == "Viewer"
        assert profile["roles"] == [{"id": seeded["Viewer"].id, "name": "Viewer"}]
        assert "dashboard:read" in profile["permissions"]

    async def test_register_without_seed_has_no_role(self, db_session):
        svc = AuthService(db_session)

        user = await svc.register("carol", "carol@example.com", "Secret123", "Carol")
        profile = await svc.profile(user.id)

        assert profile["role"] is None
        assert profile["permissions"] == []

    async def test_register_duplicate_conflicts(self, db_session, make_user):
        await make_user(username="dave")

        with pytest.raises(ConflictError):
            await AuthService(db_session).register("DAVE", "new@example.com", "Secret123", "Dave")

    async def test_login_returns_token_and_permissions(
        self, db_session, seeded, make_user, user_password
    ):
        await make_user(seeded["Manager"], username="erin")

        result = await AuthService(db_session).login("erin", user_password)

        assert result["token_type"] == "bearer"
        assert decode_access_token(result["token"])["username"] == "erin"
        assert result["user"]["role"] == "Manager"
        assert result["user"]["permissions"] == sorted(result["user"]["permissions"])
        assert "roles:update:permissions" in result["user"]["permissions"]
        assert result["user"]["last_login_at"] is not None

    async def test_login_wrong_password(self, db_session, make_user):
        await make_user(username="frank")

        with pytest.raises(UnauthorizedError):
            await AuthService(db_session).login("frank", "wrong")

    async def test_login_inactive_user(self, db_session, make_user, user_password):
        await make_user(username="gina", is_active=False)

        with pytest.raises(UnauthorizedError):
            await AuthService(db_session).login("gina", user_password)
