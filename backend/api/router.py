"""Aggregated API router, mounted under ``settings.API_PREFIX`` in main.py."""

from fastapi import APIRouter

from api.routes import (
    audit,
    auth,
    dashboard,
    health,
    permissions,
    roles,
    user_roles,
    users,
)

api_router = APIRouter()

# Health (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["Health"])

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Role management
api_router.include_router(roles.router, prefix="/roles", tags=["Roles"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["Permissions"])

# Users and their role grants
api_router.include_router(user_roles.router, prefix="/users", tags=["User Roles"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Audit trail
api_router.include_router(audit.router, prefix="/audit", tags=["Audit"])

# Dashboard
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
