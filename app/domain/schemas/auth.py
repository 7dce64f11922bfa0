"""Pydantic schemas for User and Auth."""

import re
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.domain.models.user import Role
from app.domain.schemas.base import APIModel

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&]).{8,}$")
SELF_ASSIGNABLE_ROLES = (Role.BUYER, Role.SELLER)


def normalize_email(value: str) -> str:
    return value.strip().lower()


class UserCreate(APIModel):
    email: EmailStr
    password: str = Field(..., max_length=72)
    role: Role = Role.BUYER

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value) if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        if not PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must be at least 8 characters and contain uppercase, "
                "lowercase, number, and special character (@$!%*?&)"
            )
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _self_assignable_role(cls, value):
        role = Role(value.upper()) if isinstance(value, str) else value
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValueError("Role must be BUYER or SELLER")
        return role


class RegisterResponse(APIModel):
    user_id: int


class UserRead(APIModel):
    id: int
    email: str
    role: Role
    membership: bool
    pro_seller: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class LoginRequest(APIModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class RefreshRequest(APIModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(APIModel):
    refresh_token: Optional[str] = None


class TokenResponse(APIModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
