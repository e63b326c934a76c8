"""Database models for the factory RBAC backend.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.user import User
from db.models.permission import Permission, role_permissions
from db.models.role import Role
from db.models.user_role import UserRole
from db.models.audit_log import AuditLog

__all__ = [
    "User",
    "Permission",
    "role_permissions",
    "Role",
    "UserRole",
    "AuditLog",
]
