"""User model for the factory RBAC backend."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel


class User(BaseModel):
    """User model representing a system user.

    Attributes:
        id: Unique identifier (UUID string)
        username: Login name (unique)
        email: User email address (unique)
        password_hash: Bcrypt hashed password
        full_name: Display name
        phone: Optional contact number
        is_active: Whether user account is active
        last_login_at: Timestamp of last login
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(150), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, index=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    role_grants: Mapped[list["UserRole"]] = relationship(
        "UserRole",
        foreign_keys="UserRole.user_id",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def active_roles(self) -> list["Role"]:
        """Roles whose grant is currently active (expiry is not checked here)."""
        return [g.role for g in self.role_grants if g.is_active and g.role is not None]
