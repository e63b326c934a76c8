"""Authentication service: login, register, profile."""

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from core.constants import PRIMARY_ROLE_PRIORITY
from core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from core.rbac import resolve_permissions
from core.security import create_access_token, hash_password, verify_password
from core.utils import utcnow
from db.models.role import Role
from db.models.user import User
from db.models.user_role import UserRole
from services.audit_service import SYSTEM_CONTEXT, AuditContext
from services.user_role_service import UserRoleService

logger = logging.getLogger(__name__)


def primary_role(roles: list[Role]) -> Optional[Role]:
    """Highest-priority built-in role, else the first role, else None."""
    by_name = {role.name: role for role in roles}
    for name in PRIMARY_ROLE_PRIORITY:
        if name in by_name:
            return by_name[name]
    return roles[0] if roles else None


class AuthService:
    """Handles authentication, registration, and profile lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str] = None,
        context: AuditContext = SYSTEM_CONTEXT,
    ) -> User:
        """Create a user and grant the default role when it exists.

        Raises:
            ConflictError: Username or email already registered
        """
        existing = await self.db.execute(
            select(User.id).where(
                or_(
                    func.lower(User.username) == username.lower(),
                    func.lower(User.email) == email.lower(),
                )
            )
        )
        if existing.first():
            raise ConflictError("Username or email already registered")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            phone=phone,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()

        default_role_name = get_settings().DEFAULT_ROLE_NAME
        result = await self.db.execute(
            select(Role).where(Role.name == default_role_name, Role.is_active == True)  # noqa: E712
        )
        default_role = result.scalar_one_or_none()
        if default_role:
            await UserRoleService(self.db).assign_role(user.id, default_role.id, context=context)
        else:
            logger.warning("Default role %s not found; %s has no role", default_role_name, username)

        logger.info("User registered: %s", username)
        return user

    async def login(self, username: str, password: str) -> dict:
        """Authenticate by username and return a bearer token with the profile.

        Raises:
            UnauthorizedError: Unknown, inactive user or wrong password
        """
        result = await self.db.execute(
            select(User).where(User.username == username, User.is_active == True)  # noqa: E712
        )
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", username)
            raise UnauthorizedError("Invalid username or password")

        user.last_login_at = utcnow()
        await self.db.flush()

        profile = await self.profile(user.id)
        return {
            "token": create_access_token(user_id=user.id, username=user.username),
            "token_type": "bearer",
            "user": profile,
        }

    async def profile(self, user_id: str) -> dict:
        """User fields plus active roles, primary role and permission codes."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        now = utcnow()
        result = await self.db.execute(
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user.id,
                UserRole.is_active == True,  # noqa: E712
                Role.is_active == True,  # noqa: E712
                or_(UserRole.expires_at.is_(None), UserRole.expires_at > now),
            )
            .order_by(Role.name)
        )
        roles = list(result.scalars().all())
        grants = await resolve_permissions(self.db, user.id)
        primary = primary_role(roles)

        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "full_name": user.full_name,
            "phone": user.phone,
            "is_active": user.is_active,
            "last_login_at": user.last_login_at,
            "role": primary.name if primary else None,
            "role_id": primary.id if primary else None,
            "roles": [{"id": role.id, "name": role.name} for role in roles],
            "permissions": sorted(grant.code for grant in grants),
        }
