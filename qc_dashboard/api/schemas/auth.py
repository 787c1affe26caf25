"""
Authentication request/response schemas.
Pydantic models for registration, login, password reset and the user view.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...models.enums import UserRole

PASSWORD_MIN_LENGTH = 6


def normalize_email(email: str) -> str:
    """Addresses are stored and looked up lowercased."""
    return email.strip().lower()


def _check_password(v: str) -> str:
    if len(v) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    return v


class UserRegisterRequest(BaseModel):
    """Request schema for user registration."""

    name: str = Field(..., min_length=1, max_length=100, description="Login name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description=f"Password (min {PASSWORD_MIN_LENGTH} characters)")
    role: UserRole = Field(default=UserRole.INSPECTOR, description="Account role")
    department: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please add a name")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UserLoginRequest(BaseModel):
    """Request schema for user login."""

    name: str = Field(..., min_length=1, description="Login name")
    password: str = Field(..., min_length=1, description="User password")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class ChangePasswordRequest(BaseModel):
    """Request schema for changing password."""

    current_password: str = Field(..., description="Current password")
    new_password: str = Field(..., description="New password")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password(v)


class UserResponse(BaseModel):
    """Safe user response schema (no password or reset token)."""

    id: UUID = Field(..., description="User unique identifier")
    name: str
    email: str = Field(..., description="User email address")
    role: UserRole
    department: Optional[str] = None
    is_active: bool = Field(..., description="Whether account is active")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")
    created_at: datetime = Field(..., description="Account creation timestamp")

    model_config = {"from_attributes": True}  # Allow ORM model conversion


class AuthData(BaseModel):
    """Body of register/login/reset responses."""

    user: UserResponse
    token: str = Field(..., description="JWT access token (also set as the auth cookie)")
