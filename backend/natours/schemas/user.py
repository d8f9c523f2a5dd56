"""
Natours Backend — User Schemas
================================

What:  Create / update / response contracts for users.
Note:  Passwords and sign-up/login flows live outside this API; users are
       managed as a plain resource.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from natours.schemas.common import CamelModel

ROLES = ("user", "guide", "lead-guide", "admin")


def _lower_email(v: Optional[str]) -> Optional[str]:
    # email-validator only normalizes the domain part
    return v.lower() if v is not None else v


def _check_role(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in ROLES:
        raise ValueError("Role is either: user, guide, lead-guide, admin")
    return v


class UserCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    photo: str = "default.jpg"
    role: str = "user"
    active: bool = True

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _lower_email(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        return _check_role(v)


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _lower_email(v)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        return _check_role(v)


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: EmailStr
    photo: str
    role: str
    created_at: datetime
