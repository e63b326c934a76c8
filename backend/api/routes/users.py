"""User management endpoints: list, get, create, update, activate, delete."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import PaginationParams, success
from api.schemas.user import UserCreateRequest, UserResponse, UserUpdateRequest
from app.dependencies import get_audit_context, get_current_active_user, get_db
from core.constants import Action, Module
from core.rbac import require_permission
from core.security import TokenPayload
from core.utils import calculate_offset, paginate
from services.audit_service import AuditContext
from services.user_role_service import UserRoleService
from services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_to_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        is_active=user.is_active,
        roles=sorted(role.name for role in user.active_roles),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


@router.get(
    "",
    dependencies=[Depends(require_permission(Module.USERS, Action.READ, "list"))],
)
async def list_users(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Username, name or email fragment"),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List users (paginated)."""
    users, total = await UserService(db).search(
        search=search,
        is_active=is_active,
        offset=calculate_offset(pagination.page, pagination.per_page),
        limit=pagination.per_page,
    )
    return success(
        paginate(
            [_user_to_response(u) for u in users],
            total,
            pagination.page,
            pagination.per_page,
        )
    )


@router.get(
    "/{user_id}",
    dependencies=[Depends(require_permission(Module.USERS, Action.READ, "detail"))],
)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await UserService(db).get_or_404(user_id)
    return success(_user_to_response(user))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Module.USERS, Action.CREATE, "user"))],
)
async def create_user(
    body: UserCreateRequest,
    audit: AuditContext = Depends(get_audit_context),
    db: AsyncSession = Depends(get_db),
):
    """Create an account and grant the requested roles."""
    user = await UserService(db).create_user(
        body.username.strip(), body.email, body.password, body.full_name.strip(), body.phone
    )
    grants = UserRoleService(db)
    for role_id in dict.fromkeys(body.role_ids):
        await grants.assign_role(user.id, role_id, context=audit)
    await db.refresh(user, ["role_grants"])
    return success(_user_to_response(user), "User created successfully")


@router.put(
    "/{user_id}",
    dependencies=[Depends(require_permission(Module.USERS, Action.UPDATE, "user"))],
)
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update_user(user_id, body.model_dump(exclude_unset=True))
    return success(_user_to_response(user), "User updated successfully")


@router.patch(
    "/{user_id}/toggle-active",
    dependencies=[Depends(require_permission(Module.USERS, Action.UPDATE, "status"))],
)
async def toggle_user_active(
    user_id: str,
    current_user: TokenPayload = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Flip a user's active flag. Deactivated users fail every authenticated call."""
    svc = UserService(db)
    user = await svc.get_or_404(user_id)
    user = await svc.set_active(user.id, not user.is_active, current_user.sub)
    state = "activated" if user.is_active else "deactivated"
    return success({"is_active": user.is_active}, f"User {state} successfully")


@router.delete(
    "/{user_id}",
    dependencies=[Depends(require_permission(Module.USERS, Action.DELETE, "user"))],
)
async def delete_user(
    user_id: str,
    current_user: TokenPayload = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).delete_user(user_id, current_user.sub)
    return success(None, "User deleted successfully")
