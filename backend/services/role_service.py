"""Role management service.

Creation, update, deletion and cloning of roles, and replacement of a
role's permission set. Every mutation writes a role audit entry.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import AuditAction
from core.exceptions import ConflictError, ProtectedResourceError, ValidationError
from db.models.permission import Permission, role_permissions
from db.models.role import Role
from db.models.user_role import UserRole
from services.audit_service import SYSTEM_CONTEXT, AuditContext, AuditService
from services.base import BaseService
from services.permission_service import PermissionService

logger = logging.getLogger(__name__)


@dataclass
class RoleSummary:
    """A role with its permission and active-user counts."""

    role: Role
    permission_count: int
    user_count: int


@dataclass
class PermissionDiff:
    """Outcome of replacing a role's permission set."""

    added: int
    removed: int
    unchanged: int
    permission_ids: list[str]


class RoleService(BaseService[Role]):
    """Service for role and role-permission management."""

    not_found_message = "Role not found"

    def __init__(self, db: AsyncSession):
        super().__init__(Role, db)
        self.audit = AuditService(db)
        self.permissions = PermissionService(db)

    # ─── Read ──────────────────────────────────────────────

    async def get_by_name(self, name: str) -> Optional[Role]:
        """Case-insensitive name lookup; an exact-case match wins, then the oldest."""
        name = name.strip()
        result = await self.db.execute(
            select(Role)
            .where(func.lower(Role.name) == name.lower())
            .order_by(Role.name != name, Role.created_at, Role.id)
        )
        return result.scalars().first()

    async def list_with_counts(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[RoleSummary]:
        """All roles ordered by name, with permission and active-user counts."""
        permission_count = (
            select(func.count())
            .select_from(role_permissions)
            .where(role_permissions.c.role_id == Role.id)
            .correlate(Role)
            .scalar_subquery()
        )
        user_count = (
            select(func.count(UserRole.id))
            .where(UserRole.role_id == Role.id, UserRole.is_active == True)  # noqa: E712
            .correlate(Role)
            .scalar_subquery()
        )
        query = select(Role, permission_count, user_count).order_by(Role.name)
        if search:
            query = query.where(Role.name.ilike(f"%{search}%"))
        if is_active is not None:
            query = query.where(Role.is_active == is_active)

        result = await self.db.execute(query)
        return [RoleSummary(role, pc or 0, uc or 0) for role, pc, uc in result.all()]

    async def permission_ids(self, role_id: str) -> set[str]:
        result = await self.db.execute(
            select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
        )
        return set(result.scalars().all())

    async def list_permissions(self, role_id: str) -> Sequence[Permission]:
        result = await self.db.execute(
            select(Permission)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id)
            .order_by(Permission.module, Permission.action, Permission.resource)
        )
        return result.scalars().all()

    async def active_user_count(self, role_id: str) -> int:
        result = await self.db.execute(
            select(func.count(UserRole.id)).where(
                UserRole.role_id == role_id, UserRole.is_active == True  # noqa: E712
            )
        )
        return result.scalar() or 0

    # ─── Create ────────────────────────────────────────────

    async def create_role(
        self,
        name: str,
        description: Optional[str] = None,
        permission_ids: Optional[list[str]] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> Role:
        """Create a non-system role, optionally with initial permissions.

        Raises:
            ValidationError: Empty name or unknown permission ids
            ConflictError: Name already taken
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required")
        await self._ensure_name_free(name)

        wanted = set(permission_ids or [])
        await self._ensure_permissions_exist(wanted)

        role = await self.create(
            {"name": name, "description": description, "is_system": False, "is_active": True}
        )
        await self._add_permissions(role.id, wanted)
        await self.audit.record(
            AuditAction.ROLE_CREATED,
            role.id,
            {"name": name, "description": description, "permission_count": len(wanted)},
            context,
        )
        await self.db.refresh(role, ["permissions"])
        logger.info("Role created: %s (%d permissions)", name, len(wanted))
        return role

    async def clone_role(
        self,
        role_id: str,
        name: str,
        description: Optional[str] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> Role:
        """Copy a role's description, status and permissions under a new name.

        The clone is never a system role.
        """
        source = await self.get_or_404(role_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required")
        await self._ensure_name_free(name)

        source_ids = await self.permission_ids(source.id)
        clone = await self.create(
            {
                "name": name,
                "description": description if description is not None else source.description,
                "is_system": False,
                "is_active": source.is_active,
            }
        )
        await self._add_permissions(clone.id, source_ids)
        await self.audit.record(
            AuditAction.ROLE_CLONED,
            clone.id,
            {"name": name, "source_role_id": source.id, "source_role": source.name,
             "permission_count": len(source_ids)},
            context,
        )
        await self.db.refresh(clone, ["permissions"])
        logger.info("Role cloned: %s -> %s", source.name, name)
        return clone

    # ─── Update ────────────────────────────────────────────

    async def update_role(
        self,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> Role:
        """Update name, description or status of a role.

        Raises:
            ProtectedResourceError: Renaming a system role
            ConflictError: New name already taken
        """
        role = await self.get_or_404(role_id)
        changes: dict = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Role name cannot be empty")
            if name != role.name:
                if role.is_system:
                    raise ProtectedResourceError(
                        "System roles cannot be renamed", details={"role": role.name}
                    )
                await self._ensure_name_free(name, exclude_id=role.id)
                changes["name"] = {"from": role.name, "to": name}

        if description is not None and description != role.description:
            changes["description"] = {"from": role.description, "to": description}
        if is_active is not None and is_active != role.is_active:
            changes["is_active"] = {"from": role.is_active, "to": is_active}

        if not changes:
            return role

        await self.apply_updates(
            role, {field: change["to"] for field, change in changes.items()}
        )
        await self.audit.record(AuditAction.ROLE_UPDATED, role.id, changes, context)
        logger.info("Role updated: %s %s", role.name, sorted(changes))
        return role

    async def replace_permissions(
        self,
        role_id: str,
        permission_ids: list[str],
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> PermissionDiff:
        """Make the role's permission set exactly ``permission_ids``.

        Unknown ids are rejected before anything changes. Additions and
        removals run in one SAVEPOINT, so either both apply or neither does.
        System roles may be edited.
        """
        role = await self.get_or_404(role_id)
        target = set(permission_ids)
        await self._ensure_permissions_exist(target)

        current = await self.permission_ids(role.id)
        to_add = target - current
        to_remove = current - target

        if to_add or to_remove:
            async with self.db.begin_nested():
                await self._add_permissions(role.id, to_add)
                await self._remove_permissions(role.id, to_remove)

            await self.audit.record(
                AuditAction.PERMISSIONS_REPLACED,
                role.id,
                {"role": role.name, "added": sorted(to_add), "removed": sorted(to_remove)},
                context,
            )
            await self.db.refresh(role, ["permissions"])
            logger.info(
                "Role permissions replaced: %s (+%d -%d)", role.name, len(to_add), len(to_remove)
            )

        return PermissionDiff(
            added=len(to_add),
            removed=len(to_remove),
            unchanged=len(current & target),
            permission_ids=sorted(target),
        )

    # ─── Delete ────────────────────────────────────────────

    async def delete_role(self, role_id: str, context: AuditContext = SYSTEM_CONTEXT) -> dict:
        """Delete a non-system role with its grants and permission links.

        Raises:
            ProtectedResourceError: The role is a system role; nothing changes
        """
        role = await self.get_or_404(role_id)
        if role.is_system:
            logger.warning("Refused to delete system role %s", role.name)
            raise ProtectedResourceError(
                "System roles cannot be deleted", details={"role": role.name}
            )

        async with self.db.begin_nested():
            grants = await self.db.execute(delete(UserRole).where(UserRole.role_id == role.id))
            links = await self.db.execute(
                delete(role_permissions).where(role_permissions.c.role_id == role.id)
            )
            await self.db.execute(delete(Role).where(Role.id == role.id))

        summary = {
            "role": role.name,
            "revoked_assignments": grants.rowcount or 0,
            "removed_permissions": links.rowcount or 0,
        }
        await self.audit.record(AuditAction.ROLE_DELETED, role.id, summary, context)
        logger.info("Role deleted: %s", role.name)
        return summary

    # ─── Helpers ───────────────────────────────────────────

    async def _ensure_name_free(self, name: str, exclude_id: Optional[str] = None) -> None:
        existing = await self.get_by_name(name)
        if existing and existing.id != exclude_id:
            raise ConflictError("Role name already exists", details={"name": name})

    async def _ensure_permissions_exist(self, permission_ids: set[str]) -> None:
        missing = await self.permissions.missing_ids(permission_ids)
        if missing:
            raise ValidationError(
                "Unknown permission ids", details={"invalid_permission_ids": missing}
            )

    async def _add_permissions(self, role_id: str, permission_ids: set[str]) -> None:
        if permission_ids:
            await self.db.execute(
                insert(role_permissions),
                [{"role_id": role_id, "permission_id": pid} for pid in sorted(permission_ids)],
            )

    async def _remove_permissions(self, role_id: str, permission_ids: set[str]) -> None:
        if permission_ids:
            await self.db.execute(
                delete(role_permissions).where(
                    role_permissions.c.role_id == role_id,
                    role_permissions.c.permission_id.in_(permission_ids),
                )
            )
