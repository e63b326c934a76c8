"""Custom exceptions for the factory RBAC backend."""

from typing import Any, Optional


class AppException(Exception):
    """Base exception for the application.

    ``details`` is merged into the JSON error body next to ``message``.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP status code
            details: Extra machine-readable fields for the response body
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", details: Optional[dict] = None):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404, details)


class UnauthorizedError(AppException):
    """Missing or invalid credentials."""

    def __init__(self, message: str = "Unauthorized", details: Optional[dict] = None):
        """Initialize UnauthorizedError with 401 status code."""
        super().__init__(message, 401, details)


class ForbiddenError(AppException):
    """Valid identity without the required permission."""

    def __init__(self, message: str = "Forbidden", details: Optional[dict] = None):
        """Initialize ForbiddenError with 403 status code."""
        super().__init__(message, 403, details)


class ProtectedResourceError(ForbiddenError):
    """Attempt to delete or rename a system role."""

    def __init__(self, message: str = "Resource is protected", details: Optional[dict] = None):
        """Initialize ProtectedResourceError with 403 status code."""
        super().__init__(message, details)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation failed", details: Optional[dict] = None):
        """Initialize ValidationError with 400 status code."""
        super().__init__(message, 400, details)


class ConflictError(AppException):
    """Duplicate unique key, e.g. role name or permission triple."""

    def __init__(self, message: str = "Resource conflict", details: Optional[dict] = None):
        """Initialize ConflictError with 409 status code."""
        super().__init__(message, 409, details)
