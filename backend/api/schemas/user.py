"""User account schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class UserResponse(BaseModel):
    """User information response."""

    id: str = Field(description="User ID")
    username: str = Field(description="Login name")
    email: str = Field(description="User email address")
    full_name: str = Field(description="Display name")
    phone: Optional[str] = None
    is_active: bool = Field(description="Whether user account is active")
    roles: List[str] = Field(default=[], description="Names of active roles")
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = Field(default=None, description="User creation timestamp")


class UserCreateRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=150)
    phone: Optional[str] = Field(default=None, max_length=30)
    role_ids: List[str] = Field(default_factory=list, description="Roles granted on creation")


class UserUpdateRequest(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    phone: Optional[str] = Field(default=None, max_length=30)
    password: Optional[str] = Field(default=None, min_length=6)
