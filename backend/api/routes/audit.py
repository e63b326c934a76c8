"""Role audit log API routes.

Read-only access to the trail of role-management changes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import success
from api.schemas.rbac import AuditLogResponse
from app.dependencies import get_db
from core.constants import Action, Module
from core.rbac import require_permission
from core.utils import calculate_offset, paginate
from services.audit_service import AuditService

router = APIRouter()


@router.get(
    "",
    dependencies=[Depends(require_permission(Module.SETTINGS, Action.READ, "audit_log"))],
)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    role_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None, description="e.g. role_created, user_assigned"),
    performed_by: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List audit entries, newest first."""
    entries, total = await AuditService(db).search(
        role_id=role_id,
        action=action,
        performed_by=performed_by,
        offset=calculate_offset(page, per_page),
        limit=per_page,
    )
    return success(
        paginate([AuditLogResponse.model_validate(e) for e in entries], total, page, per_page)
    )
