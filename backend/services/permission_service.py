"""Permission catalog service."""

import logging
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConflictError
from db.models.permission import Permission
from services.base import BaseService

logger = logging.getLogger(__name__)


class PermissionService(BaseService[Permission]):
    """Lookup and maintenance of (module, action, resource) permissions.

    The database enforces one row per triple. Inserts run in a SAVEPOINT so
    a concurrent insert of the same triple surfaces as an IntegrityError
    without aborting the caller's transaction.
    """

    not_found_message = "Permission not found"

    def __init__(self, db: AsyncSession):
        super().__init__(Permission, db)

    async def find(
        self, module: str, action: str, resource: Optional[str] = None
    ) -> Optional[Permission]:
        """Exact triple lookup; a NULL resource only matches NULL."""
        result = await self.db.execute(
            select(Permission).where(
                Permission.module == module,
                Permission.action == action,
                Permission.resource_key == (resource or ""),
            )
        )
        return result.scalar_one_or_none()

    async def ensure(
        self,
        module: str,
        action: str,
        resource: Optional[str] = None,
        description: Optional[str] = None,
    ) -> tuple[Permission, bool]:
        """Return the permission for a triple, creating it if missing.

        Returns:
            (permission, created)
        """
        resource = resource or None
        existing = await self.find(module, action, resource)
        if existing:
            return existing, False
        try:
            permission = await self._insert(module, action, resource, description)
        except IntegrityError:
            return await self.find(module, action, resource), False
        return permission, True

    async def create_permission(
        self,
        module: str,
        action: str,
        resource: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Permission:
        """Create a permission; a duplicate triple raises ConflictError."""
        resource = resource or None
        conflict = ConflictError(
            "Permission already exists",
            details={"permission": {"module": module, "action": action, "resource": resource}},
        )
        if await self.find(module, action, resource):
            raise conflict
        try:
            permission = await self._insert(module, action, resource, description)
        except IntegrityError:
            raise conflict
        logger.info("Permission created: %s", permission.code)
        return permission

    async def _insert(
        self,
        module: str,
        action: str,
        resource: Optional[str],
        description: Optional[str],
    ) -> Permission:
        async with self.db.begin_nested():
            return await self.create(
                {"module": module, "action": action, "resource": resource, "description": description}
            )

    async def list_permissions(
        self,
        module: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Sequence[Permission]:
        """Whole catalog ordered by module, action, resource."""
        query = select(Permission)
        if module:
            query = query.where(Permission.module == module)
        if action:
            query = query.where(Permission.action == action)
        query = query.order_by(Permission.module, Permission.action, Permission.resource)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def grouped_by_module(self) -> dict[str, list[Permission]]:
        grouped: dict[str, list[Permission]] = {}
        for permission in await self.list_permissions():
            grouped.setdefault(permission.module, []).append(permission)
        return grouped

    async def modules(self) -> list[dict]:
        """Distinct modules with the number of permissions in each."""
        result = await self.db.execute(
            select(Permission.module, func.count(Permission.id))
            .group_by(Permission.module)
            .order_by(Permission.module)
        )
        return [{"module": module, "permission_count": count} for module, count in result.all()]

    async def missing_ids(self, permission_ids: set[str]) -> list[str]:
        """IDs from ``permission_ids`` that do not exist, sorted."""
        if not permission_ids:
            return []
        result = await self.db.execute(
            select(Permission.id).where(Permission.id.in_(permission_ids))
        )
        found = set(result.scalars().all())
        return sorted(permission_ids - found)

