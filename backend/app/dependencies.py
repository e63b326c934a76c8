"""FastAPI dependency injection functions."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.security import get_current_user, TokenPayload
from db.database import AsyncSessionLocal
from services.audit_service import AuditContext

logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:
    """
    Provide a database session for API endpoints.

    Yields an async SQLAlchemy session that is automatically
    committed on success or rolled back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Database error: {str(e)}")
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_current_active_user(
    current_user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TokenPayload:
    """
    Get the current authenticated user and verify they are active in the DB.

    Returns:
        Current user token payload (with verified active status)

    Raises:
        HTTPException: 401 if the user no longer exists, 403 if deactivated
    """
    from db.models.user import User

    result = await db.execute(
        select(User.is_active).where(User.id == current_user.sub)
    )
    row = result.first()

    if not row:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not row[0]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return current_user


async def get_audit_context(
    request: Request,
    current_user: TokenPayload = Depends(get_current_active_user),
) -> AuditContext:
    """Build the audit context for the current request."""
    return AuditContext(
        user_id=current_user.sub,
        ip_address=request.client.host if request.client else None,
        user_agent=(request.headers.get("user-agent") or "")[:255] or None,
    )
