"""
User management schemas.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .auth import normalize_email
from ...models.enums import UserRole


class UserUpdateRequest(BaseModel):
    """
    Partial user update.

    Passwords are changed through the auth endpoints only; ``role`` and
    ``is_active`` are honoured for admins only.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v is not None else v

    @property
    def touches_privileges(self) -> bool:
        return self.role is not None or self.is_active is not None
