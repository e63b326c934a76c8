"""Tests for database models: creation, constraints and relationships."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from db.models.permission import Permission
from db.models.role import Role
from db.models.user_role import UserRole


@pytest.mark.unit
class TestPermissionCode:
    def test_with_resource(self):
        assert Permission(module="stock", action="execute", resource="stock_in").code == (
            "stock:execute:stock_in"
        )

    def test_wildcard(self):
        assert Permission(module="dashboard", action="read").code == "dashboard:read"


@pytest.mark.integration
class TestUserModel:

    async def test_create_user(self, make_user):
        user = await make_user(username="alice")

        assert user.id is not None
        assert user.created_at is not None
        assert user.is_active is True
        assert user.email.startswith("alice-")

    async def test_duplicate_username_rejected(self, db_session, make_user):
        await make_user(username="alice")

        with pytest.raises(IntegrityError):
            await make_user(username="alice")
        await db_session.rollback()


@pytest.mark.integration
class TestRoleModel:

    async def test_defaults(self, db_session):
        role = Role(name="Operator")
        db_session.add(role)
        await db_session.flush()

        assert role.is_system is False
        assert role.is_active is True

    async def test_permissions_relationship(self, db_session):
        role = Role(name="Operator")
        role.permissions.append(Permission(module="stock", action="execute", resource="stock_out"))
        db_session.add(role)
        await db_session.commit()

        loaded = await db_session.scalar(
            select(Role).where(Role.name == "Operator").execution_options(populate_existing=True)
        )
        assert [p.code for p in loaded.permissions] == ["stock:execute:stock_out"]


@pytest.mark.integration
class TestUserRoleModel:

    async def test_one_row_per_user_and_role(self, db_session, make_user):
        role = Role(name="Operator")
        db_session.add(role)
        await db_session.commit()
        user = await make_user(role)

        db_session.add(UserRole(user_id=user.id, role_id=role.id, is_active=False))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_grant_loads_role(self, db_session, make_user):
        role = Role(name="Operator")
        db_session.add(role)
        await db_session.commit()
        user = await make_user(role)

        grant = await db_session.scalar(
            select(UserRole).where(UserRole.user_id == user.id).execution_options(
                populate_existing=True
            )
        )
        assert grant.role.name == "Operator"
        assert grant.assigned_at is not None
