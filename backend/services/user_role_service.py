"""User role grants: assignment, revocation, bulk assignment, effective permissions.

A (user, role) pair has at most one ``user_roles`` row. Revoking flips it
inactive; assigning again reactivates the same row.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import AuditAction
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.rbac import effective_permissions_query
from core.utils import to_naive_utc, utcnow
from db.models.permission import Permission
from db.models.role import Role
from db.models.user import User
from db.models.user_role import UserRole
from services.audit_service import SYSTEM_CONTEXT, AuditContext, AuditService

logger = logging.getLogger(__name__)


@dataclass
class BulkAssignResult:
    """Per-user outcome of a bulk assignment."""

    assigned: list[str] = field(default_factory=list)
    reactivated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)


def _is_current(grant: UserRole, now: datetime) -> bool:
    return grant.is_active and (grant.expires_at is None or grant.expires_at > now)


class UserRoleService:
    """Manages which roles a user holds."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def _get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _get_assignable_role(self, role_id: str) -> Role:
        role = await self.db.get(Role, role_id)
        if role is None or not role.is_active:
            raise NotFoundError("Role not found or inactive")
        return role

    async def _get_grant(self, user_id: str, role_id: str) -> Optional[UserRole]:
        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.scalar_one_or_none()

    async def list_user_roles(
        self, user_id: str, include_inactive: bool = False
    ) -> Sequence[UserRole]:
        """Grants of a user with their roles, newest first."""
        await self._get_user(user_id)
        query = select(UserRole).where(UserRole.user_id == user_id)
        if not include_inactive:
            query = query.where(UserRole.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(UserRole.assigned_at.desc()))
        return result.scalars().all()

    async def assign_role(
        self,
        user_id: str,
        role_id: str,
        expires_at: Optional[datetime] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> tuple[UserRole, bool]:
        """Grant a role to a user.

        Creates the grant, or reactivates a revoked or expired one.

        Returns:
            (grant, reactivated)

        Raises:
            NotFoundError: Unknown user, or unknown or inactive role
            ConflictError: The user already holds the role
            ValidationError: ``expires_at`` is in the past
        """
        user = await self._get_user(user_id)
        role = await self._get_assignable_role(role_id)

        now = utcnow()
        if expires_at is not None:
            expires_at = to_naive_utc(expires_at)
            if expires_at <= now:
                raise ValidationError("expires_at must be in the future")

        grant = await self._get_grant(user.id, role.id)
        reactivated = grant is not None
        if grant is None:
            grant = UserRole(user_id=user.id, role_id=role.id, role=role)
            self.db.add(grant)
        elif _is_current(grant, now):
            raise ConflictError(
                "User already has this role",
                details={"user_id": user.id, "role_id": role.id},
            )

        grant.is_active = True
        grant.assigned_by = context.user_id
        grant.assigned_at = now
        grant.expires_at = expires_at
        grant.revoked_by = None
        grant.revoked_at = None
        await self.db.flush()

        await self.audit.record(
            AuditAction.USER_ASSIGNED,
            role.id,
            {
                "user_id": user.id,
                "username": user.username,
                "role": role.name,
                "reactivated": reactivated,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
            context,
        )
        logger.info(
            "Role %s %s to user %s",
            role.name,
            "reactivated" if reactivated else "assigned",
            user.username,
        )
        return grant, reactivated

    async def revoke_role(
        self,
        user_id: str,
        role_id: str,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> UserRole:
        """Deactivate a user's grant; the row is kept.

        Revoking the user's last role is allowed and leaves them with no
        permissions at all.
        """
        user = await self._get_user(user_id)
        grant = await self._get_grant(user.id, role_id)
        if grant is None or not grant.is_active:
            raise NotFoundError("Role assignment not found")

        grant.is_active = False
        grant.revoked_by = context.user_id
        grant.revoked_at = utcnow()
        await self.db.flush()

        await self.audit.record(
            AuditAction.USER_REMOVED,
            role_id,
            {"user_id": user.id, "username": user.username, "role": grant.role.name},
            context,
        )
        logger.info("Role %s revoked from user %s", grant.role.name, user.username)
        return grant

    async def bulk_assign(
        self,
        role_id: str,
        user_ids: list[str],
        expires_at: Optional[datetime] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> BulkAssignResult:
        """Grant one role to many users.

        Users who already hold the role are skipped; unknown users are
        reported in ``errors``. An unknown or inactive role fails the whole
        call.
        """
        await self._get_assignable_role(role_id)
        outcome = BulkAssignResult()

        for user_id in dict.fromkeys(user_ids):
            try:
                _, reactivated = await self.assign_role(user_id, role_id, expires_at, context)
            except ConflictError:
                outcome.skipped.append(user_id)
            except NotFoundError as exc:
                outcome.errors.append({"user_id": user_id, "message": exc.message})
            else:
                (outcome.reactivated if reactivated else outcome.assigned).append(user_id)

        logger.info(
            "Bulk assign role=%s assigned=%d reactivated=%d skipped=%d errors=%d",
            role_id,
            len(outcome.assigned),
            len(outcome.reactivated),
            len(outcome.skipped),
            len(outcome.errors),
        )
        return outcome

    async def effective_permissions(self, user_id: str) -> Sequence[Permission]:
        """Permissions the user currently holds through active, unexpired grants."""
        await self._get_user(user_id)
        result = await self.db.execute(effective_permissions_query(user_id))
        return result.scalars().all()

    async def migrate_users(
        self,
        from_role_id: str,
        to_role_id: str,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> int:
        """Move every active holder of one role to another.

        Each user is granted the target role first, then the source grant is
        revoked, so nobody is left without a role in between.

        Returns:
            Number of users moved
        """
        if from_role_id == to_role_id:
            raise ValidationError("Source and target roles must differ")
        await self._get_assignable_role(to_role_id)

        result = await self.db.execute(
            select(UserRole).where(
                UserRole.role_id == from_role_id,
                UserRole.is_active == True,  # noqa: E712
            )
        )
        moved = 0
        for grant in result.scalars().all():
            target = await self._get_grant(grant.user_id, to_role_id)
            if target is None or not _is_current(target, utcnow()):
                await self.assign_role(grant.user_id, to_role_id, context=context)
            await self.revoke_role(grant.user_id, from_role_id, context)
            moved += 1
        return moved
