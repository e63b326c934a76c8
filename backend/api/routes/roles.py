"""Role management endpoints.

List, inspect, create, update, delete and clone roles, and replace a
role's permission set. System roles cannot be deleted or renamed.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import success
from api.schemas.rbac import (
    PermissionResponse,
    RoleCloneRequest,
    RoleCreateRequest,
    RoleDetailResponse,
    RoleListItem,
    RolePermissionsRequest,
    RoleResponse,
    RoleUpdateRequest,
)
from app.dependencies import get_audit_context, get_current_active_user, get_db
from core.constants import Action, Module
from core.rbac import enforce, require_permission
from core.security import TokenPayload
from services.audit_service import AuditContext
from services.role_service import RoleService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _role_detail(svc: RoleService, role) -> RoleDetailResponse:
    permissions = await svc.list_permissions(role.id)
    return RoleDetailResponse(
        **RoleResponse.model_validate(role).model_dump(),
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
        user_count=await svc.active_user_count(role.id),
    )


@router.get(
    "",
    dependencies=[Depends(require_permission(Module.ROLES, Action.READ, "list"))],
)
async def list_roles(
    search: Optional[str] = Query(None, description="Name fragment"),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List roles with permission and active user counts."""
    summaries = await RoleService(db).list_with_counts(search=search, is_active=is_active)
    return success(
        [
            RoleListItem(
                **RoleResponse.model_validate(s.role).model_dump(),
                permission_count=s.permission_count,
                user_count=s.user_count,
            )
            for s in summaries
        ]
    )


@router.get(
    "/{role_id}",
    dependencies=[Depends(require_permission(Module.ROLES, Action.READ, "role"))],
)
async def get_role(role_id: str, db: AsyncSession = Depends(get_db)):
    """Role with its permissions."""
    svc = RoleService(db)
    role = await svc.get_or_404(role_id)
    return success(await _role_detail(svc, role))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Module.ROLES, Action.CREATE, "role"))],
)
async def create_role(
    body: RoleCreateRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a custom role, optionally with initial permissions."""
    svc = RoleService(db)
    role = await svc.create_role(body.name, body.description, body.permission_ids, audit)
    return success(await _role_detail(svc, role), "Role created successfully")


@router.put(
    "/{role_id}",
    dependencies=[Depends(require_permission(Module.ROLES, Action.UPDATE, "role"))],
)
async def update_role(
    role_id: str,
    body: RoleUpdateRequest,
    current_user: TokenPayload = Depends(get_current_active_user),
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Update name, description or status; ``permission_ids`` replaces the set."""
    svc = RoleService(db)

    if body.permission_ids is not None:
        await enforce(db, current_user, Module.ROLES, Action.UPDATE, "permissions")

    role = await svc.update_role(
        role_id,
        name=body.name,
        description=body.description,
        is_active=body.is_active,
        context=audit,
    )
    if body.permission_ids is not None:
        await svc.replace_permissions(role.id, body.permission_ids, audit)

    return success(await _role_detail(svc, role), "Role updated successfully")


@router.delete(
    "/{role_id}",
    dependencies=[Depends(require_permission(Module.ROLES, Action.DELETE, "role"))],
)
async def delete_role(
    role_id: str,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete a custom role with its assignments and permission links."""
    summary = await RoleService(db).delete_role(role_id, audit)
    return success(summary, "Role deleted successfully")


@router.get(
    "/{role_id}/permissions",
    dependencies=[Depends(require_permission(Module.ROLES, Action.READ, "role"))],
)
async def get_role_permissions(role_id: str, db: AsyncSession = Depends(get_db)):
    svc = RoleService(db)
    role = await svc.get_or_404(role_id)
    permissions = await svc.list_permissions(role.id)
    return success([PermissionResponse.model_validate(p) for p in permissions])


@router.put(
    "/{role_id}/permissions",
    dependencies=[Depends(require_permission(Module.ROLES, Action.UPDATE, "permissions"))],
)
async def replace_role_permissions(
    role_id: str,
    body: RolePermissionsRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Make the role's permission set exactly ``permission_ids`` (all or nothing)."""
    diff = await RoleService(db).replace_permissions(role_id, body.permission_ids, audit)
    return success(
        {
            "added": diff.added,
            "removed": diff.removed,
            "unchanged": diff.unchanged,
            "permission_ids": diff.permission_ids,
        },
        "Role permissions updated successfully",
    )


@router.post(
    "/{role_id}/clone",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Module.ROLES, Action.EXECUTE, "clone"))],
)
async def clone_role(
    role_id: str,
    body: RoleCloneRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Copy a role and its permissions under a new name."""
    svc = RoleService(db)
    clone = await svc.clone_role(role_id, body.name, body.description, audit)
    return success(await _role_detail(svc, clone), "Role cloned successfully")
