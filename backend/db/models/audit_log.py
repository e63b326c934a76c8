"""Role audit log model."""

from typing import Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import AuditAction
from db.base import BaseModel


class AuditLog(BaseModel):
    """Trail of role-management changes.

    ``role_id`` is not a foreign key so entries survive role deletion; the
    role name is kept in ``changes``.

    Attributes:
        id: Unique identifier (UUID string)
        role_id: Role the change applies to
        action: Event type (see AuditAction)
        changes: JSON payload describing the change
        performed_by: User who performed the change (None for scripts)
        ip_address: Client address of the request
        user_agent: Client user agent of the request
        created_at: Creation timestamp
    """

    __tablename__ = "role_audit_logs"

    role_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    action: Mapped[str] = mapped_column(
        String(50), default=AuditAction.ROLE_UPDATED.value, index=True
    )
    changes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
