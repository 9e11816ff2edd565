"""
DisasterHub Backend — Account Schemas
=======================================

What:  Request/response contracts for /api/auth.
Security: No response schema has a password field; UserResponse is built
          from the ORM object and can only expose the attributes listed here.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, EmailStr, Field, StringConstraints, field_validator

from disasterhub.models.enums import Role
from disasterhub.schemas.common import APIModel

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
Password = Annotated[str, StringConstraints(min_length=6, max_length=128)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
Skill = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


EMAIL_MAX_LENGTH = 100


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    return value


Email = Annotated[EmailStr, AfterValidator(_normalize_email)]


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(APIModel):
    name: Name
    email: Email
    password: Password
    role: Role = Role.USER
    location: Optional[ShortText] = None
    phone: Optional[ShortText] = None
    skills: Optional[List[Skill]] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        """Admin accounts cannot be self-registered."""
        if v == Role.ADMIN:
            raise ValueError("Role must be one of: user, volunteer")
        return v


class LoginRequest(APIModel):
    email: Email
    password: str = Field(min_length=1)


class ProfileUpdate(APIModel):
    name: Optional[Name] = None
    location: Optional[ShortText] = None
    phone: Optional[ShortText] = None
    skills: Optional[List[Skill]] = None


class PasswordChange(APIModel):
    current_password: str = Field(min_length=1)
    new_password: Password


class AdminUserUpdate(APIModel):
    """Admin edit of another account; every field is optional."""
    name: Optional[Name] = None
    location: Optional[ShortText] = None
    phone: Optional[ShortText] = None
    skills: Optional[List[Skill]] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[Role]) -> Optional[Role]:
        if v == Role.ADMIN:
            raise ValueError("Accounts cannot be promoted to admin through the API")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(APIModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    location: str = ""
    phone: str = ""
    skills: List[str] = Field(default_factory=list)
    is_active: bool
    last_login: Optional[datetime] = None
    profile_image: Optional[str] = None
    created_at: datetime


class UserEnvelope(APIModel):
    user: UserResponse


class AuthResponse(APIModel):
    token: str
    user: UserResponse


class UserListResponse(APIModel):
    count: int
    users: List[UserResponse]
