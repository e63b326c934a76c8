"""UserRole model: a user's grant of a role."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.utils import utcnow
from db.base import BaseModel


class UserRole(BaseModel):
    """Association object between User and Role.

    One row per (user, role) pair. Revoking flips ``is_active`` instead of
    deleting, so the assignment history is kept and a later re-assignment
    reactivates the same row.

    Attributes:
        id: Unique identifier (UUID string)
        user_id: Foreign key to the grantee
        role_id: Foreign key to the granted role
        is_active: Whether the grant currently applies
        assigned_by: User who made (or last renewed) the grant
        assigned_at: When the grant was made or last renewed
        expires_at: Optional expiry (naive UTC); expired grants apply nothing
        revoked_by: User who revoked the grant
        revoked_at: When the grant was revoked
    """

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(default=True, index=True)
    assigned_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    revoked_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(
        "User", foreign_keys=[user_id], back_populates="role_grants"
    )
    role: Mapped["Role"] = relationship("Role", lazy="selectin")
