"""Role, permission and role-grant schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class PermissionResponse(BaseModel):
    """A (module, action, resource) permission."""

    id: str
    module: str
    action: str
    resource: Optional[str] = Field(default=None, description="NULL applies to every resource")
    description: Optional[str] = None
    code: str = Field(description="module:action[:resource]")

    class Config:
        from_attributes = True


class PermissionCreateRequest(BaseModel):
    module: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    resource: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=255)


class RoleResponse(BaseModel):
    """Role without its permissions."""

    id: str
    name: str
    description: Optional[str] = None
    is_system: bool
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleListItem(RoleResponse):
    permission_count: int = 0
    user_count: int = 0


class RoleDetailResponse(RoleResponse):
    permissions: List[PermissionResponse] = []
    user_count: int = 0


class RoleCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=255)
    permission_ids: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Role name is required")
        return value


class RoleUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None
    permission_ids: Optional[List[str]] = Field(
        default=None, description="When given, replaces the role's permission set"
    )


class RolePermissionsRequest(BaseModel):
    permission_ids: List[str] = Field(description="Complete target permission set")


class RoleCloneRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=255)


class AssignRoleRequest(BaseModel):
    role_id: str = Field(description="Role ID to assign")
    expires_at: Optional[datetime] = Field(default=None, description="Optional grant expiry")


class BulkAssignRequest(BaseModel):
    role_id: str
    user_ids: List[str] = Field(min_length=1, max_length=100)
    expires_at: Optional[datetime] = None


class UserRoleResponse(BaseModel):
    """A user's grant of a role."""

    id: str
    role_id: str
    role_name: str
    is_active: bool
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_grant(cls, grant) -> "UserRoleResponse":
        return cls(
            id=grant.id,
            role_id=grant.role_id,
            role_name=grant.role.name,
            is_active=grant.is_active,
            assigned_by=grant.assigned_by,
            assigned_at=grant.assigned_at,
            expires_at=grant.expires_at,
            revoked_at=grant.revoked_at,
        )


class AuditLogResponse(BaseModel):
    id: str
    role_id: Optional[str] = None
    action: str
    changes: Optional[dict] = None
    performed_by: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
