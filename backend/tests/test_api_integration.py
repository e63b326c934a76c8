"""Integration tests for API endpoints.

These tests exercise the full HTTP stack: FastAPI -> route guard -> service -> DB.
Each test gets its own SQLite file.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from core.utils import utcnow
from db.models.audit_log import AuditLog
from services.permission_service import PermissionService
from services.role_service import RoleService

pytestmark = pytest.mark.integration


def _assert_error(resp, status_code):
    assert resp.status_code == status_code
    body = resp.json()
    assert body["success"] is False
    assert body["message"]
    return body


# ─── Authentication ───

class TestAuthentication:

    async def test_missing_token_is_401(self, client, seeded):
        body = _assert_error(await client.get("/api/roles"), 401)
        assert body["message"] == "Access token required"

    async def test_invalid_token_is_401(self, client, seeded):
        resp = await client.get("/api/roles", headers={"Authorization": "Bearer garbage"})
        _assert_error(resp, 401)

    async def test_token_of_deleted_user_is_401(self, client, auth_for, seeded):
        class Ghost:
            id = "no-such-user"
            username = "ghost"

        resp = await client.get("/api/roles", headers=auth_for(Ghost))
        _assert_error(resp, 401)

    async def test_deactivated_user_is_403(self, client, make_user, auth_for, seeded):
        user = await make_user(seeded["Admin"], is_active=False)

        body = _assert_error(await client.get("/api/roles", headers=auth_for(user)), 403)
        assert body["message"] == "User account is deactivated"

    async def test_register_then_login(self, client, seeded):
        resp = await client.post(
            "/api/auth/register",
            json={
                "username": "newbie",
                "email": "newbie@example.com",
                "password": "Secret123",
                "full_name": "New Person",
            },
        )
        assert resp.status_code == 201
        assert resp.json()["success"] is True

        resp = await client.post(
            "/api/auth/login", json={"username": "newbie", "password": "Secret123"}
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "Viewer"
        assert "dashboard:read" in data["user"]["permissions"]

    async def test_register_duplicate_is_409(self, client, seeded, make_user):
        await make_user(username="taken")

        resp = await client.post(
            "/api/auth/register",
            json={
                "username": "taken",
                "email": "other@example.com",
                "password": "Secret123",
                "full_name": "Someone",
            },
        )
        _assert_error(resp, 409)

    async def test_login_wrong_password_is_401(self, client, viewer_user):
        resp = await client.post(
            "/api/auth/login", json={"username": "viewer", "password": "nope"}
        )
        _assert_error(resp, 401)

    async def test_me_reflects_current_roles(self, client, viewer_user, viewer_headers):
        resp = await client.get("/api/auth/me", headers=viewer_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["username"] == "viewer"
        assert data["role"] == "Viewer"
        assert "users:read:list" not in data["permissions"]

    async def test_logout(self, client, viewer_headers):
        resp = await client.post("/api/auth/logout", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logout successful"


# ─── Route authorization ───

class TestRouteAuthorization:

    async def test_viewer_cannot_delete_role(self, client, seeded, viewer_headers):
        resp = await client.delete(f"/api/roles/{seeded['Manager'].id}", headers=viewer_headers)

        body = _assert_error(resp, 403)
        assert body["message"] == "Access denied. Insufficient permissions."
        assert body["required_permission"] == {
            "module": "roles",
            "action": "delete",
            "resource": "role",
        }

    async def test_viewer_cannot_list_users(self, client, viewer_headers):
        _assert_error(await client.get("/api/users", headers=viewer_headers), 403)

    async def test_viewer_sees_dashboard(self, client, viewer_headers):
        resp = await client.get("/api/dashboard/overview", headers=viewer_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["roles"]["system"] == 3
        assert data["users"]["total"] == 1

    async def test_user_without_roles_is_denied(self, client, make_user, auth_for, seeded):
        user = await make_user()
        _assert_error(await client.get("/api/dashboard/overview", headers=auth_for(user)), 403)

    async def test_manager_needs_permissions_grant_to_change_set(
        self, client, db_session, seeded, make_user, auth_for
    ):
        roles = RoleService(db_session)
        editor = await roles.create_role("Editor")
        update_role, _ = await PermissionService(db_session).ensure("roles", "update", "role")
        await roles.replace_permissions(editor.id, [update_role.id])
        await db_session.commit()
        user = await make_user(editor)
        target = await roles.create_role("Target")
        await db_session.commit()

        resp = await client.put(
            f"/api/roles/{target.id}",
            json={"description": "renamed", "permission_ids": []},
            headers=auth_for(user),
        )
        body = _assert_error(resp, 403)
        assert body["required_permission"]["resource"] == "permissions"

        resp = await client.put(
            f"/api/roles/{target.id}", json={"description": "renamed"}, headers=auth_for(user)
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["description"] == "renamed"


# ─── Roles ───

class TestRolesApi:

    async def test_list_roles(self, client, admin_headers):
        resp = await client.get("/api/roles", headers=admin_headers)
        assert resp.status_code == 200
        names = [r["name"] for r in resp.json()["data"]]
        assert names == ["Admin", "Manager", "Viewer"]

    async def test_get_unknown_role_is_404(self, client, admin_headers):
        body = _assert_error(await client.get("/api/roles/missing", headers=admin_headers), 404)
        assert body["message"] == "Role not found"

    async def test_create_and_duplicate(self, client, admin_headers):
        payload = {"name": "Supervisor", "description": "Shift lead"}

        resp = await client.post("/api/roles", json=payload, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["name"] == "Supervisor"
        assert data["is_system"] is False
        assert data["permissions"] == []

        _assert_error(await client.post("/api/roles", json=payload, headers=admin_headers), 409)

    async def test_validation_error_is_400(self, client, admin_headers):
        resp = await client.post("/api/roles", json={"description": "no name"}, headers=admin_headers)
        body = _assert_error(resp, 400)
        assert body["errors"][0]["field"].endswith("name")

    async def test_system_role_delete_is_403(self, client, seeded, admin_headers):
        resp = await client.delete(f"/api/roles/{seeded['Admin'].id}", headers=admin_headers)
        _assert_error(resp, 403)

        resp = await client.get(f"/api/roles/{seeded['Admin'].id}", headers=admin_headers)
        assert resp.status_code == 200

    async def test_delete_custom_role(self, client, db_session, admin_headers, make_user):
        role = await RoleService(db_session).create_role("Temp")
        await db_session.commit()
        await make_user(role)

        resp = await client.delete(f"/api/roles/{role.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json()["data"]["revoked_assignments"] == 1
        _assert_error(await client.get(f"/api/roles/{role.id}", headers=admin_headers), 404)

    async def test_replace_permissions(self, client, db_session, seeded, admin_headers):
        svc = PermissionService(db_session)
        dashboard, _ = await svc.ensure("dashboard", "read", None)
        report, _ = await svc.ensure("reports", "read", "sales_report")
        await db_session.commit()
        role = await RoleService(db_session).create_role("Analyst", permission_ids=[dashboard.id])
        await db_session.commit()

        resp = await client.put(
            f"/api/roles/{role.id}/permissions",
            json={"permission_ids": [report.id]},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["added"], data["removed"], data["unchanged"]) == (1, 1, 0)
        resp = await client.get(f"/api/roles/{role.id}/permissions", headers=admin_headers)
        assert [p["code"] for p in resp.json()["data"]] == ["reports:read:sales_report"]

    async def test_replace_with_unknown_ids_is_400(self, client, seeded, admin_headers):
        resp = await client.put(
            f"/api/roles/{seeded['Viewer'].id}/permissions",
            json={"permission_ids": ["bogus"]},
            headers=admin_headers,
        )
        body = _assert_error(resp, 400)
        assert body["invalid_permission_ids"] == ["bogus"]

    async def test_clone(self, client, seeded, admin_headers):
        resp = await client.post(
            f"/api/roles/{seeded['Viewer'].id}/clone",
            json={"name": "Auditor"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["name"] == "Auditor"
        assert data["is_system"] is False
        assert len(data["permissions"]) > 0


# ─── Permissions catalog ───

class TestPermissionsApi:

    async def test_by_module(self, client, admin_headers):
        resp = await client.get("/api/permissions/by-module", headers=admin_headers)
        assert resp.status_code == 200
        grouped = resp.json()["data"]
        assert all(p["module"] == "reports" for p in grouped["reports"])

    async def test_modules(self, client, admin_headers):
        resp = await client.get("/api/permissions/modules", headers=admin_headers)
        modules = [m["module"] for m in resp.json()["data"]]
        assert "dashboard" in modules
        assert modules == sorted(modules)

    async def test_create_permission(self, client, admin_headers):
        payload = {"module": "reports", "action": "read", "resource": "scrap_report"}

        resp = await client.post("/api/permissions", json=payload, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["data"]["code"] == "reports:read:scrap_report"

        _assert_error(
            await client.post("/api/permissions", json=payload, headers=admin_headers), 409
        )


# ─── User roles ───

class TestUserRolesApi:

    async def test_assign_revoke_cycle(self, client, seeded, admin_headers, make_user, auth_for):
        user = await make_user()
        headers = auth_for(user)
        _assert_error(await client.get("/api/dashboard/overview", headers=headers), 403)

        resp = await client.post(
            f"/api/users/{user.id}/roles",
            json={"role_id": seeded["Viewer"].id},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["role_name"] == "Viewer"

        assert (await client.get("/api/dashboard/overview", headers=headers)).status_code == 200

        resp = await client.post(
            f"/api/users/{user.id}/roles",
            json={"role_id": seeded["Viewer"].id},
            headers=admin_headers,
        )
        _assert_error(resp, 409)

        resp = await client.delete(
            f"/api/users/{user.id}/roles/{seeded['Viewer'].id}", headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["is_active"] is False

        _assert_error(await client.get("/api/dashboard/overview", headers=headers), 403)

        resp = await client.post(
            f"/api/users/{user.id}/roles",
            json={"role_id": seeded["Viewer"].id},
            headers=admin_headers,
        )
        assert resp.json()["message"] == "Role reactivated successfully"

    async def test_past_expiry_is_400(self, client, seeded, admin_headers, make_user):
        user = await make_user()
        resp = await client.post(
            f"/api/users/{user.id}/roles",
            json={
                "role_id": seeded["Viewer"].id,
                "expires_at": (utcnow() - timedelta(days=1)).isoformat(),
            },
            headers=admin_headers,
        )
        _assert_error(resp, 400)

    async def test_effective_permissions(self, client, seeded, admin_headers, viewer_user):
        resp = await client.get(f"/api/users/{viewer_user.id}/permissions", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert "dashboard:read" in data["codes"]
        assert set(data["by_module"]) <= {
            "dashboard", "products", "inventory", "stock", "production",
            "sales_orders", "customers", "suppliers", "reports",
        }

    async def test_bulk_assign(self, client, seeded, admin_headers, make_user):
        first = await make_user()
        second = await make_user(seeded["Manager"])

        resp = await client.post(
            "/api/users/roles/bulk-assign",
            json={"role_id": seeded["Manager"].id, "user_ids": [first.id, second.id, "ghost"]},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["assigned"] == [first.id]
        assert data["skipped"] == [second.id]
        assert data["errors"][0]["user_id"] == "ghost"

    async def test_bulk_assign_over_limit_is_400(self, client, seeded, admin_headers):
        resp = await client.post(
            "/api/users/roles/bulk-assign",
            json={"role_id": seeded["Manager"].id, "user_ids": [f"u{i}" for i in range(101)]},
            headers=admin_headers,
        )
        _assert_error(resp, 400)


# ─── Users ───

class TestUsersApi:

    async def test_create_user_with_roles(self, client, seeded, admin_headers):
        resp = await client.post(
            "/api/users",
            json={
                "username": "operator1",
                "email": "operator1@example.com",
                "password": "Secret123",
                "full_name": "Operator One",
                "role_ids": [seeded["Manager"].id],
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["roles"] == ["Manager"]

    async def test_list_users_paginated(self, client, admin_headers, viewer_user):
        resp = await client.get("/api/users", params={"per_page": 1}, headers=admin_headers)
        assert resp.status_code == 200
        page = resp.json()["data"]
        assert page["total"] == 2
        assert len(page["items"]) == 1
        assert page["has_next"] is True

    async def test_toggle_active(self, client, admin_headers, viewer_user, viewer_headers):
        resp = await client.patch(
            f"/api/users/{viewer_user.id}/toggle-active", headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["is_active"] is False

        _assert_error(await client.get("/api/auth/me", headers=viewer_headers), 403)

    async def test_cannot_deactivate_self(self, client, admin_user, admin_headers):
        resp = await client.patch(
            f"/api/users/{admin_user.id}/toggle-active", headers=admin_headers
        )
        _assert_error(resp, 400)


# ─── Audit ───

class TestAuditApi:

    async def test_role_changes_are_listed(self, client, db_session, admin_user, admin_headers):
        resp = await client.post("/api/roles", json={"name": "Audited"}, headers=admin_headers)
        role_id = resp.json()["data"]["id"]

        resp = await client.get("/api/audit", params={"role_id": role_id}, headers=admin_headers)

        assert resp.status_code == 200
        items = resp.json()["data"]["items"]
        assert [i["action"] for i in items] == ["role_created"]
        assert items[0]["performed_by"] == admin_user.id
        entry = await db_session.scalar(select(AuditLog).where(AuditLog.role_id == role_id))
        assert entry.ip_address is not None

    async def test_viewer_cannot_read_audit(self, client, viewer_headers):
        _assert_error(await client.get("/api/audit", headers=viewer_headers), 403)
