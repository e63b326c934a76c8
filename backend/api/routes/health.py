"""Health check endpoint.

Liveness plus a database ping. Returns 503 when the database is
unreachable.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

_start_time = time.monotonic()
_start_datetime = datetime.now(timezone.utc).isoformat()


@router.get("")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness probe with dependency verification."""
    settings = get_settings()
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        checks["database"] = "unavailable"

    healthy = checks["database"] == "ok"
    body = {
        "success": healthy,
        "data": {
            "status": "healthy" if healthy else "unhealthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "started_at": _start_datetime,
            "uptime_seconds": round(time.monotonic() - _start_time, 1),
            "checks": checks,
        },
    }
    if not healthy:
        body["message"] = "Database unavailable"
    return JSONResponse(status_code=200 if healthy else 503, content=body)
