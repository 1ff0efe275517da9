"""
Auth and account schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from core.schemas import CamelModel


class RegisterRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name cannot be blank")
        return value.strip()


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=20)


class LogoutRequest(CamelModel):
    # Omitted: revoke every session of the authenticated user.
    refresh_token: str | None = Field(default=None, min_length=20)


class ProfileUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=320)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class UserResponse(CamelModel):
    id: str
    email: str
    name: str
    is_active: bool
    created_at: datetime


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(CamelModel):
    user: UserResponse
    tokens: TokenPairResponse
