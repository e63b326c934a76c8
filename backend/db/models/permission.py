"""Permission model and role_permissions association table."""

from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from db.base import Base, BaseModel

# Association table for many-to-many relationship between Role and Permission
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column(
        "role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    ),
    Column(
        "permission_id",
        String(36),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Permission(BaseModel):
    """Atomic capability identified by (module, action, resource).

    A NULL resource applies to every resource of the module/action pair.
    SQL treats NULLs as distinct in unique constraints, so uniqueness is
    enforced on ``resource_key``, which mirrors ``resource`` with NULL
    stored as an empty string.

    Attributes:
        id: Unique identifier (UUID string)
        module: Functional area (e.g. 'dashboard', 'users')
        action: Operation (e.g. 'read', 'create')
        resource: Optional sub-scope (e.g. 'overview'); NULL is a wildcard
        resource_key: ``resource`` or '', covered by the unique constraint
        description: Human-readable description
    """

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint(
            "module", "action", "resource_key", name="uq_permissions_module_action_resource"
        ),
    )

    module: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resource_key: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @validates("resource")
    def _sync_resource_key(self, key: str, value: Optional[str]) -> Optional[str]:
        self.resource_key = value or ""
        return value

    @property
    def code(self) -> str:
        """Permission string, e.g. ``reports:read:sales_report`` or ``dashboard:read``."""
        if self.resource:
            return f"{self.module}:{self.action}:{self.resource}"
        return f"{self.module}:{self.action}"
