"""Dashboard overview endpoint: access-control counts and recent changes."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import success
from api.schemas.rbac import AuditLogResponse
from app.dependencies import get_db
from core.constants import Action, Module
from core.rbac import require_permission
from db.models.audit_log import AuditLog
from db.models.permission import Permission
from db.models.role import Role
from db.models.user import User
from db.models.user_role import UserRole

router = APIRouter()


@router.get(
    "/overview",
    dependencies=[Depends(require_permission(Module.DASHBOARD, Action.READ, "overview"))],
)
async def get_overview(db: AsyncSession = Depends(get_db)):
    """User, role and permission totals plus the five latest role changes."""
    users_total = await db.scalar(select(func.count(User.id))) or 0
    users_active = await db.scalar(
        select(func.count(User.id)).where(User.is_active == True)  # noqa: E712
    ) or 0
    roles_total = await db.scalar(select(func.count(Role.id))) or 0
    roles_system = await db.scalar(
        select(func.count(Role.id)).where(Role.is_system == True)  # noqa: E712
    ) or 0
    permissions_total = await db.scalar(select(func.count(Permission.id))) or 0
    active_grants = await db.scalar(
        select(func.count(UserRole.id)).where(UserRole.is_active == True)  # noqa: E712
    ) or 0

    recent = (
        await db.execute(select(AuditLog).order_by(AuditLog.created_at.desc()).limit(5))
    ).scalars().all()

    return success(
        {
            "users": {"total": users_total, "active": users_active},
            "roles": {"total": roles_total, "system": roles_system},
            "permissions": {"total": permissions_total},
            "active_assignments": active_grants,
            "recent_changes": [AuditLogResponse.model_validate(e) for e in recent],
        }
    )
