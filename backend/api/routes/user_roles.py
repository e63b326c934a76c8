"""User-role assignment endpoints.

Assign, revoke and bulk-assign roles, and inspect a user's effective
permissions.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import success
from api.schemas.rbac import (
    AssignRoleRequest,
    BulkAssignRequest,
    PermissionResponse,
    UserRoleResponse,
)
from app.dependencies import get_audit_context, get_db
from core.constants import Action, Module
from core.rbac import require_permission
from services.audit_service import AuditContext
from services.user_role_service import UserRoleService

router = APIRouter()

manage_roles = require_permission(Module.USERS, Action.UPDATE, "roles")


@router.post(
    "/roles/bulk-assign",
    dependencies=[Depends(manage_roles)],
)
async def bulk_assign_role(
    body: BulkAssignRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Assign one role to many users; returns a per-user summary."""
    outcome = await UserRoleService(db).bulk_assign(
        body.role_id, body.user_ids, body.expires_at, audit
    )
    done = len(outcome.assigned) + len(outcome.reactivated)
    return success(
        {
            "assigned": outcome.assigned,
            "reactivated": outcome.reactivated,
            "skipped": outcome.skipped,
            "errors": outcome.errors,
        },
        f"Role assigned to {done} user(s)",
    )


@router.get(
    "/{user_id}/roles",
    dependencies=[Depends(require_permission(Module.USERS, Action.READ, "roles"))],
)
async def get_user_roles(
    user_id: str,
    include_inactive: bool = Query(False, description="Include revoked grants"),
    db: AsyncSession = Depends(get_db),
):
    """Roles granted to a user."""
    grants = await UserRoleService(db).list_user_roles(user_id, include_inactive)
    return success([UserRoleResponse.from_grant(g) for g in grants])


@router.post(
    "/{user_id}/roles",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(manage_roles)],
)
async def assign_role(
    user_id: str,
    body: AssignRoleRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Grant a role, or reactivate a previously revoked grant."""
    grant, reactivated = await UserRoleService(db).assign_role(
        user_id, body.role_id, body.expires_at, audit
    )
    message = "Role reactivated successfully" if reactivated else "Role assigned successfully"
    return success(UserRoleResponse.from_grant(grant), message)


@router.delete(
    "/{user_id}/roles/{role_id}",
    dependencies=[Depends(manage_roles)],
)
async def revoke_role(
    user_id: str,
    role_id: str,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a grant. Revoking the last role leaves the user without permissions."""
    grant = await UserRoleService(db).revoke_role(user_id, role_id, audit)
    return success(UserRoleResponse.from_grant(grant), "Role removed successfully")


@router.get(
    "/{user_id}/permissions",
    dependencies=[Depends(require_permission(Module.USERS, Action.READ, "permissions"))],
)
async def get_user_permissions(user_id: str, db: AsyncSession = Depends(get_db)):
    """Effective permissions through active grants, flat and grouped by module."""
    permissions = [
        PermissionResponse.model_validate(p)
        for p in await UserRoleService(db).effective_permissions(user_id)
    ]
    by_module: dict[str, list[PermissionResponse]] = {}
    for permission in permissions:
        by_module.setdefault(permission.module, []).append(permission)

    return success(
        {
            "permissions": permissions,
            "by_module": by_module,
            "codes": [p.code for p in permissions],
        }
    )
