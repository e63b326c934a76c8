"""Permission catalog endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import success
from api.schemas.rbac import PermissionCreateRequest, PermissionResponse
from app.dependencies import get_db
from core.constants import Action, Module
from core.rbac import require_permission
from services.permission_service import PermissionService

router = APIRouter()

read_catalog = require_permission(Module.ROLES, Action.READ, "permissions")


@router.get("", dependencies=[Depends(read_catalog)])
async def list_permissions(
    module: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """All permissions, optionally filtered by module and action."""
    permissions = await PermissionService(db).list_permissions(module=module, action=action)
    return success([PermissionResponse.model_validate(p) for p in permissions])


@router.get("/by-module", dependencies=[Depends(read_catalog)])
async def permissions_by_module(db: AsyncSession = Depends(get_db)):
    """Permissions grouped by module."""
    grouped = await PermissionService(db).grouped_by_module()
    return success(
        {
            module: [PermissionResponse.model_validate(p) for p in permissions]
            for module, permissions in grouped.items()
        }
    )


@router.get("/modules", dependencies=[Depends(read_catalog)])
async def list_modules(db: AsyncSession = Depends(get_db)):
    """Distinct modules with their permission counts."""
    return success(await PermissionService(db).modules())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Module.ROLES, Action.CREATE, "permission"))],
)
async def create_permission(body: PermissionCreateRequest, db: AsyncSession = Depends(get_db)):
    """Add a permission to the catalog; a duplicate triple is rejected with 409."""
    permission = await PermissionService(db).create_permission(
        body.module.strip(),
        body.action.strip(),
        body.resource.strip() if body.resource else None,
        body.description,
    )
    return success(PermissionResponse.model_validate(permission), "Permission created successfully")
