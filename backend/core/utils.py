"""
Utility functions for the factory RBAC backend.

Includes:
- Pagination helpers
- UTC datetime helpers
"""

from datetime import datetime, timezone
from typing import List, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """
    Get the current UTC time as a naive datetime.

    Grant timestamps (``assigned_at``, ``expires_at``, ``revoked_at``) are
    stored as naive UTC, so comparisons against them use this.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def paginate(
    items: List[T],
    total: int,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Helper to create paginated response.

    Args:
        items: List of items for current page
        total: Total number of items across all pages
        page: Current page number (1-indexed)
        per_page: Number of items per page

    Returns:
        Dictionary with pagination metadata
    """
    total_pages = (total + per_page - 1) // per_page
    return {
        "items": items,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def calculate_offset(page: int = 1, per_page: int = 20) -> int:
    """
    Calculate database offset from page and per_page values.

    Args:
        page: Page number (1-indexed)
        per_page: Items per page

    Returns:
        Offset for database queries
    """
    return (page - 1) * per_page
