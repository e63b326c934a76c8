"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class LoginRequest(BaseModel):
    """User login request."""

    username: str = Field(min_length=1, description="Login name")
    password: str = Field(min_length=1, description="User password")

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()


class RegisterRequest(BaseModel):
    """Self registration request. New accounts get the default role."""

    username: str = Field(min_length=3, max_length=50, description="Login name (min 3 characters)")
    email: EmailStr = Field(description="User email address")
    password: str = Field(min_length=6, description="User password (min 6 characters)")
    full_name: str = Field(min_length=1, max_length=150, description="Display name")
    phone: Optional[str] = Field(default=None, max_length=30)

    @field_validator("username", "full_name")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value
