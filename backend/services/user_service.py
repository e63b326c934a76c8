"""User service: account management."""

import logging
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConflictError, ValidationError
from core.security import hash_password
from db.models.user import User
from services.base import BaseService

logger = logging.getLogger(__name__)


class UserService(BaseService[User]):
    """Service for user accounts. Role grants live in UserRoleService."""

    not_found_message = "User not found"

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def _ensure_unique(
        self, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None
    ) -> None:
        clauses = []
        if username:
            clauses.append(func.lower(User.username) == username.lower())
        if email:
            clauses.append(func.lower(User.email) == email.lower())
        if not clauses:
            return
        query = select(User.id).where(or_(*clauses))
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise ConflictError("Username or email already registered")

    async def search(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[User], int]:
        """Users matching a username/name/email fragment, newest first."""
        query = select(User)
        count_query = select(func.count()).select_from(User)
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    User.username.ilike(pattern),
                    User.full_name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        if is_active is not None:
            conditions.append(User.is_active == is_active)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)

        result = await self.db.execute(
            query.order_by(User.created_at.desc()).offset(offset).limit(limit)
        )
        total = (await self.db.execute(count_query)).scalar() or 0
        return result.scalars().all(), total

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str] = None,
    ) -> User:
        await self._ensure_unique(username, email)
        user = await self.create(
            {
                "username": username,
                "email": email,
                "password_hash": hash_password(password),
                "full_name": full_name,
                "phone": phone,
                "is_active": True,
            }
        )
        logger.info("User created: %s", username)
        return user

    async def update_user(self, user_id: str, data: dict) -> User:
        """Update profile fields; a new password is hashed."""
        user = await self.get_or_404(user_id)
        allowed_fields = {"email", "full_name", "phone", "is_active"}
        safe_data = {k: v for k, v in data.items() if k in allowed_fields}
        await self._ensure_unique(None, safe_data.get("email"), exclude_id=user.id)
        if data.get("password"):
            safe_data["password_hash"] = hash_password(data["password"])
        return await self.apply_updates(user, safe_data)

    async def set_active(self, user_id: str, is_active: bool, acting_user_id: str) -> User:
        """Activate or deactivate an account; users cannot deactivate themselves."""
        if user_id == acting_user_id and not is_active:
            raise ValidationError("Cannot deactivate your own account")
        user = await self.get_or_404(user_id)
        user.is_active = is_active
        await self.db.flush()
        logger.info("User %s %s", user.username, "activated" if is_active else "deactivated")
        return user

    async def delete_user(self, user_id: str, acting_user_id: str) -> None:
        """Delete an account together with its role grants."""
        if user_id == acting_user_id:
            raise ValidationError("Cannot delete your own account")
        user = await self.get_or_404(user_id)
        await self.db.delete(user)
        await self.db.flush()
        logger.info("User deleted: %s", user.username)
