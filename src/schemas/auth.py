"""Pydantic schemas for authentication endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials for password login."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """
    A freshly issued access token.

    ``expires_at`` is epoch seconds. Clients should replace the token whenever
    a response carries an X-Renewed-Token header.
    """

    token: str
    token_type: str = "Bearer"
    expires_at: int


class RegisterRequest(BaseModel):
    """Schema for self-registration."""

    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    surname: str | None = Field(default=None, max_length=100)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class ResetPasswordRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=6)
    password: str = Field(..., min_length=8, max_length=255)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=255)


class MemberResponse(BaseModel):
    """Public view of a member. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str | None
    surname: str | None
    created_at: datetime


class VerifyResponse(BaseModel):
    member: MemberResponse


class MessageResponse(BaseModel):
    message: str
