"""Models package exports."""

from kaabe.models.auth import (
    AuthenticateRequest,
    AuthenticateResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
)
from kaabe.models.user import Role, SessionToken, User

__all__ = [
    "AuthenticateRequest",
    "AuthenticateResponse",
    "ErrorResponse",
    "ForgotPasswordRequest",
    "MessageResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "Role",
    "SessionToken",
    "UpdateUserRequest",
    "User",
]
