"""Role audit trail.

Every role-management mutation records one entry in ``role_audit_logs``
within the caller's transaction, so a rolled back change leaves no entry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import AuditAction
from db.models.audit_log import AuditLog
from services.base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditContext:
    """Who performed a change and from where."""

    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# Used by scripts and tests where there is no request.
SYSTEM_CONTEXT = AuditContext()


class AuditService(BaseService[AuditLog]):
    """Writes and queries role audit log entries."""

    def __init__(self, db: AsyncSession):
        super().__init__(AuditLog, db)

    async def record(
        self,
        action: Union[AuditAction, str],
        role_id: Optional[str],
        changes: Optional[dict[str, Any]] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> AuditLog:
        """Add an audit entry to the current transaction."""
        action = action.value if isinstance(action, AuditAction) else action
        entry = AuditLog(
            role_id=role_id,
            action=action,
            changes=changes or {},
            performed_by=context.user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.info("Audit: %s role=%s by=%s", action, role_id, context.user_id or "system")
        return entry

    async def search(
        self,
        role_id: Optional[str] = None,
        action: Optional[str] = None,
        performed_by: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[AuditLog], int]:
        """Newest first, optionally filtered."""
        return await self.list(
            offset=offset,
            limit=limit,
            order_by="created_at",
            order_desc=True,
            filters={"role_id": role_id, "action": action, "performed_by": performed_by},
        )
