"""User API endpoints: registration, login, password reset, and user management."""

from uuid import UUID

import asyncpg
import structlog
from fastapi import APIRouter, Depends, status

from kaabe.api.dependencies import require_auth
from kaabe.exceptions import Conflict, NotFound, ValidationError, store_errors
from kaabe.models.auth import (
    AuthenticateRequest,
    AuthenticateResponse,
    ForgotPasswordRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
)
from kaabe.models.user import User
from kaabe.services.auth_service import AuthService
from kaabe.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _parse_user_id(raw: str) -> UUID:
    """Parse a path identifier, rejecting anything that is not a UUID."""
    try:
        return UUID(raw)
    except ValueError:
        raise ValidationError("invalid user id") from None


# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------

@router.post("", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest) -> User:
    """Register a new user.

    Raises:
        409: If the email is already registered
    """
    auth_service = AuthService()
    return await auth_service.register(
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        role=request.role,
        wallet_id=request.wallet_id,
    )


@router.post("/authenticate")
async def authenticate(request: AuthenticateRequest) -> AuthenticateResponse:
    """Log in with email and password and receive a bearer token.

    Raises:
        401: If the credentials are invalid
    """
    auth_service = AuthService()
    user, session = await auth_service.authenticate(request.email, request.password)

    return AuthenticateResponse(
        access_token=session.token,
        token_type="bearer",
        expires_at=session.expires_at,
        expires_in=int(auth_service.session_ttl.total_seconds()),
        user=user,
    )


@router.post("/forgot-password")
async def forgot_password(request: ForgotPasswordRequest) -> MessageResponse:
    """Start a password reset; the reset link goes out by email."""
    auth_service = AuthService()
    await auth_service.initiate_password_reset(request.email)
    return MessageResponse(message="Reset token sent to email if user exists")


@router.post("/reset-password")
async def reset_password(request: ResetPasswordRequest) -> MessageResponse:
    """Complete a password reset with the emailed token.

    Raises:
        400: If the token is unknown, already used, or expired
    """
    auth_service = AuthService()
    await auth_service.complete_password_reset(request.token, request.new_password)
    return MessageResponse(message="Password reset successfully")


# ---------------------------------------------------------------------------
# Protected routes
# ---------------------------------------------------------------------------

@router.get("")
async def list_users(current_user_id: UUID = Depends(require_auth)) -> list[User]:
    """List all users ordered by creation date."""
    user_service = UserService()
    with store_errors("user_list_failed"):
        return await user_service.list_users()


@router.get("/{user_id}")
async def get_user(user_id: str, current_user_id: UUID = Depends(require_auth)) -> User:
    """Get a single user.

    Raises:
        400: If user_id is not a UUID
        404: If the user does not exist
    """
    target_id = _parse_user_id(user_id)

    user_service = UserService()
    with store_errors("user_get_failed", user_id=str(target_id)):
        user = await user_service.get_by_id(target_id)

    if user is None:
        raise NotFound("user not found")

    return user


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    current_user_id: UUID = Depends(require_auth),
) -> User:
    """Update the provided fields of a user.

    Raises:
        400: If user_id is not a UUID
        404: If the user does not exist
        409: If the new email belongs to another user
    """
    target_id = _parse_user_id(user_id)

    user_service = UserService()
    with store_errors("user_update_failed", user_id=str(target_id)):
        try:
            updated = await user_service.update_user(
                user_id=target_id,
                email=request.email,
                password=request.password,
                first_name=request.first_name,
                last_name=request.last_name,
                role=request.role,
                wallet_id=request.wallet_id,
            )
        except asyncpg.UniqueViolationError:
            raise Conflict("user already exists") from None

    if updated is None:
        raise NotFound("user not found")

    logger.info(
        "user_updated_by",
        actor_id=str(current_user_id),
        target_user_id=str(target_id),
    )
    return updated


@router.delete("/{user_id}")
async def delete_user(
    user_id: str, current_user_id: UUID = Depends(require_auth)
) -> MessageResponse:
    """Delete a user and, by cascade, their session tokens.

    Raises:
        400: If user_id is not a UUID
        404: If the user does not exist
    """
    target_id = _parse_user_id(user_id)

    user_service = UserService()
    with store_errors("user_delete_failed", user_id=str(target_id)):
        deleted = await user_service.delete_user(target_id)

    if not deleted:
        raise NotFound("user not found")

    logger.info(
        "user_deleted_by",
        actor_id=str(current_user_id),
        target_user_id=str(target_id),
    )
    return MessageResponse(message="user deleted successfully")
