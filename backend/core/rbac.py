"""Role-Based Access Control (RBAC) enforcement.

The evaluator is a pure function of the caller's effective permission
grants and the request triple (module, action, resource). Grants are
re-read from the database on every request; nothing is cached.

Usage:
    @router.get(
        "/roles",
        dependencies=[Depends(require_permission(Module.ROLES, Action.READ, "list"))],
    )
    async def list_roles(...): ...
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Union

from fastapi import Depends
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_current_active_user, get_db
from core.constants import Action, Module
from core.exceptions import ForbiddenError
from core.security import TokenPayload
from core.utils import utcnow
from db.models.permission import Permission, role_permissions
from db.models.role import Role
from db.models.user_role import UserRole

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    """Outcome of an authorization check. There is no explicit deny rule."""

    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


@dataclass(frozen=True)
class PermissionGrant:
    """A (module, action, resource) triple held by a user through a role."""

    module: str
    action: str
    resource: Optional[str] = None

    @property
    def code(self) -> str:
        return format_permission(self.module, self.action, self.resource)

    def matches(self, module: str, action: str, resource: Optional[str] = None) -> bool:
        """Same module and action, and resource is a wildcard or equal."""
        if self.module != module or self.action != action:
            return False
        return self.resource is None or self.resource == resource


def _value(item: Union[str, Enum]) -> str:
    return item.value if isinstance(item, Enum) else item


def format_permission(module, action, resource: Optional[str] = None) -> str:
    """Render a triple as ``module:action[:resource]``."""
    code = f"{_value(module)}:{_value(action)}"
    return f"{code}:{resource}" if resource else code


def authorize(
    grants: Iterable[PermissionGrant],
    module: Union[Module, str],
    action: Union[Action, str],
    resource: Optional[str] = None,
) -> Decision:
    """Decide whether the holder of ``grants`` may perform the request.

    Allows iff some grant has the same module and action and either a NULL
    (wildcard) resource or exactly the requested one. An empty grant set,
    i.e. a user without any active role, is always denied.
    """
    module, action = _value(module), _value(action)
    for grant in grants:
        if grant.matches(module, action, resource):
            return Decision.ALLOW
    return Decision.DENY


def effective_permissions_query(user_id: str, now: Optional[datetime] = None) -> Select:
    """SELECT of the distinct Permission rows a user holds right now.

    A grant counts when the UserRole row is active and unexpired and the
    role itself is active.
    """
    now = now or utcnow()
    return (
        select(Permission)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == role_permissions.c.role_id)
        .join(Role, Role.id == UserRole.role_id)
        .where(
            UserRole.user_id == user_id,
            UserRole.is_active == True,  # noqa: E712
            Role.is_active == True,  # noqa: E712
            or_(UserRole.expires_at.is_(None), UserRole.expires_at > now),
        )
        .distinct()
        .order_by(Permission.module, Permission.action, Permission.resource)
    )


async def active_role_ids(db: AsyncSession, user_id: str) -> set[str]:
    """IDs of the roles currently granting permissions to a user."""
    now = utcnow()
    result = await db.execute(
        select(UserRole.role_id)
        .join(Role, Role.id == UserRole.role_id)
        .where(
            UserRole.user_id == user_id,
            UserRole.is_active == True,  # noqa: E712
            Role.is_active == True,  # noqa: E712
            or_(UserRole.expires_at.is_(None), UserRole.expires_at > now),
        )
    )
    return set(result.scalars().all())


async def resolve_permissions(db: AsyncSession, user_id: str) -> frozenset[PermissionGrant]:
    """Load the user's effective grants (union over active roles)."""
    result = await db.execute(effective_permissions_query(user_id))
    return frozenset(
        PermissionGrant(p.module, p.action, p.resource) for p in result.scalars().all()
    )


async def evaluate(
    db: AsyncSession,
    user_id: str,
    module: Union[Module, str],
    action: Union[Action, str],
    resource: Optional[str] = None,
) -> Decision:
    """Resolve the user's grants and authorize one request."""
    grants = await resolve_permissions(db, user_id)
    return authorize(grants, module, action, resource)


async def enforce(
    db: AsyncSession,
    user: TokenPayload,
    module: Union[Module, str],
    action: Union[Action, str],
    resource: Optional[str] = None,
) -> None:
    """Raise ForbiddenError (403) unless ``user`` holds the permission."""
    module, action = _value(module), _value(action)
    decision = await evaluate(db, user.sub, module, action, resource)

    if not decision.allowed:
        logger.warning(
            "RBAC denied: user=%s permission=%s",
            user.username,
            format_permission(module, action, resource),
        )
        raise ForbiddenError(
            "Access denied. Insufficient permissions.",
            details={
                "required_permission": {
                    "module": module,
                    "action": action,
                    "resource": resource,
                }
            },
        )


def require_permission(
    module: Union[Module, str],
    action: Union[Action, str],
    resource: Optional[str] = None,
):
    """FastAPI dependency that enforces one (module, action, resource) triple.

    Declared in the route decorator so it runs before the handler body; a
    denied request never reaches the business logic.
    """

    async def _check(
        current_user: TokenPayload = Depends(get_current_active_user),
        db: AsyncSession = Depends(get_db),
    ) -> TokenPayload:
        await enforce(db, current_user, module, action, resource)
        return current_user

    return _check
