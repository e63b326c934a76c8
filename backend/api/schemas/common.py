"""Common schemas used across the API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Pagination parameters for list endpoints."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    per_page: int = Field(
        default=20, ge=1, le=100, description="Items per page (max 100)"
    )


def success(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    """Success envelope: ``{"success": true, "data": ..., "message"?: ...}``."""
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body
