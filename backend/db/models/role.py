"""Role model for role-based access control (RBAC)."""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel
from db.models.permission import role_permissions


class Role(BaseModel):
    """Named bundle of permissions.

    Attributes:
        id: Unique identifier (UUID string)
        name: Role name (unique)
        description: Role description
        is_system: Built-in role; cannot be deleted or renamed, but its
            permission set may still be edited
        is_active: Inactive roles grant nothing and cannot be assigned
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_system: Mapped[bool] = mapped_column(default=False)
    is_active: Mapped[bool] = mapped_column(default=True, index=True)

    # Relationships
    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.module",
    )
