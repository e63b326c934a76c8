"""Authentication endpoints: register, login, me, logout."""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.auth import LoginRequest, RegisterRequest
from api.schemas.common import success
from app.dependencies import get_current_active_user, get_db
from core.security import TokenPayload
from services.audit_service import AuditContext
from services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new account.

    The account receives the default role (Viewer) when that role exists;
    an administrator can change it later.
    """
    context = AuditContext(ip_address=request.client.host if request.client else None)
    user = await AuthService(db).register(
        username=body.username,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        phone=body.phone,
        context=context,
    )
    return success(
        {"id": user.id, "username": user.username, "email": user.email},
        "Account created. Sign in to continue.",
    )


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate with username and password.

    Returns a bearer token plus the user's active roles, primary role and
    permission codes. The token carries identity only.
    """
    result = await AuthService(db).login(body.username, body.password)
    logger.info("User logged in: %s", body.username)
    return success(result, "Login successful")


@router.get("/me")
async def me(
    current_user: TokenPayload = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Current user's profile with fresh roles and permissions."""
    return success(await AuthService(db).profile(current_user.sub))


@router.post("/logout")
async def logout(current_user: TokenPayload = Depends(get_current_active_user)):
    """Tokens are stateless; the client discards its copy."""
    logger.info("User logged out: %s", current_user.username)
    return success(None, "Logout successful")
