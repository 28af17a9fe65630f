"""Auth and user request/response models with validation."""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from kaabe.models.user import Role, User

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def _validate_email(v: str) -> str:
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


def _validate_password(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


class RegisterRequest(BaseModel):
    """New account registration.

    Attributes:
        email: Unique login email (stored as given)
        password: Plain-text password (min 6 chars), hashed before storage
        first_name: Given name
        last_name: Family name
        role: One of user, admin, influencer
        wallet_id: Optional linked payout wallet
    """

    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(default="", max_length=255)
    last_name: str = Field(default="", max_length=255)
    role: Role = Role.USER
    wallet_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        """Ensure the email looks like an address."""
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        return _validate_password(v)


class AuthenticateRequest(BaseModel):
    """Login credentials."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1)


class AuthenticateResponse(BaseModel):
    """Successful authentication response.

    Attributes:
        access_token: Opaque bearer token for the Authorization header
        token_type: Always "bearer"
        expires_at: Absolute token expiry (UTC)
        expires_in: Token lifetime in seconds
        user: The authenticated user
    """

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int = Field(ge=1, description="Token lifetime in seconds")
    user: User


class ForgotPasswordRequest(BaseModel):
    """Request to start a password reset."""

    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        """Ensure the email looks like an address."""
        return _validate_email(v)


class ResetPasswordRequest(BaseModel):
    """Complete a password reset with the emailed token.

    Attributes:
        token: Reset token (UUID) from the reset email
        new_password: Replacement password (min 6 chars)
    """

    token: UUID
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        return _validate_password(v)


class UpdateUserRequest(BaseModel):
    """Partial update of a user; only provided fields change."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[Role] = None
    wallet_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: Optional[str]) -> Optional[str]:
        """Ensure the email looks like an address when provided."""
        if v is None:
            return v
        return _validate_email(v)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: Optional[str]) -> Optional[str]:
        """Ensure password is not empty or whitespace only when provided."""
        if v is None:
            return v
        return _validate_password(v)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""

    error: str
    detail: Optional[str] = None
