"""Authentication service: registration, session issuing, token resolution,
and the password reset flow."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from kaabe.config import get_settings
from kaabe.exceptions import (
    Conflict,
    InvalidOrExpiredToken,
    NotFound,
    Unauthenticated,
    Unauthorized,
    store_errors,
)
from kaabe.models.user import Role, SessionToken, User
from kaabe.services.email_service import EmailService
from kaabe.services.password_service import PasswordHasher
from kaabe.services.token_service import TokenService
from kaabe.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Bytes of randomness in an opaque session token (URL-safe base64 encoded)
SESSION_TOKEN_BYTES = 32

INVALID_TOKEN_MESSAGE = "Invalid or expired token"
TOKEN_EXPIRED_MESSAGE = "Token expired"


class AuthService:
    """Credential lifecycle on top of the user and token stores."""

    def __init__(self):
        self.settings = get_settings()
        self.hasher = PasswordHasher()
        self.user_service = UserService()
        self.token_service = TokenService()
        self.email_service = EmailService()

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.settings.session_token_ttl_hours)

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.reset_token_ttl_minutes)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role: Role = Role.USER,
        wallet_id: Optional[str] = None,
    ) -> User:
        """Create a new identity.

        Raises:
            Conflict: If the email is already registered
            InternalFailure: If the store fails
        """
        with store_errors("user_register_failed"):
            if await self.user_service.get_by_email(email) is not None:
                logger.warning("user_register_duplicate_email")
                raise Conflict("user already exists")

            try:
                user = await self.user_service.create_user(
                    email=email,
                    password=password,
                    first_name=first_name,
                    last_name=last_name,
                    role=role,
                    wallet_id=wallet_id,
                )
            except asyncpg.UniqueViolationError:
                # Lost a race with a concurrent registration
                logger.warning("user_register_duplicate_email", race=True)
                raise Conflict("user already exists") from None

        logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        return user

    async def authenticate(self, email: str, password: str) -> tuple[User, SessionToken]:
        """Verify credentials and issue a new session token.

        Unknown email and wrong password fail with the same message.

        Returns:
            Tuple of (User, SessionToken)

        Raises:
            Unauthorized: If the credentials do not match
            InternalFailure: If the lookup or token persistence fails
        """
        with store_errors("authentication_lookup_failed"):
            result = await self.user_service.get_by_email(email)

        if result is None:
            logger.warning("authentication_failed", reason="unknown_email")
            raise Unauthorized()

        user, password_hash = result

        if not self.hasher.verify_password(password, password_hash):
            logger.warning(
                "authentication_failed",
                reason="password_mismatch",
                user_id=str(user.id),
            )
            raise Unauthorized()

        expires_at = datetime.now(timezone.utc) + self.session_ttl

        with store_errors(
            "session_token_store_failed",
            message="failed to save token",
            user_id=str(user.id),
        ):
            session = await self.token_service.create_token(
                token_id=uuid4(),
                user_id=user.id,
                token=secrets.token_urlsafe(SESSION_TOKEN_BYTES),
                expires_at=expires_at,
            )

        logger.info("user_authenticated", user_id=str(user.id), token_id=str(session.id))
        return user, session

    async def resolve_session(
        self, token: str, now: Optional[datetime] = None
    ) -> UUID:
        """Resolve a bearer token to its owner's id.

        Lookup failures and unknown tokens are both reported as
        Unauthenticated; they are told apart only in the logs.

        Args:
            token: Opaque token string from the Authorization header
            now: Reference time for the expiry check (defaults to current UTC)

        Returns:
            UUID of the owning user

        Raises:
            Unauthenticated: If the token is unknown, unreadable, or expired
        """
        now = now or datetime.now(timezone.utc)

        try:
            session = await self.token_service.find_by_token_value(token)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError) as e:
            logger.error("token_lookup_failed", error=str(e), error_type=type(e).__name__)
            raise Unauthenticated(INVALID_TOKEN_MESSAGE) from e

        if session is None:
            logger.warning("token_not_found")
            raise Unauthenticated(INVALID_TOKEN_MESSAGE)

        if session.is_expired(now):
            logger.warning(
                "token_expired",
                token_id=str(session.id),
                expired_at=session.expires_at.isoformat(),
            )
            raise Unauthenticated(TOKEN_EXPIRED_MESSAGE)

        return session.user_id

    async def initiate_password_reset(self, email: str) -> bool:
        """Issue a time-boxed reset token for the user with ``email``.

        Any pending reset token for that user is replaced. Unknown emails
        succeed silently unless reset_reveal_unknown_email is enabled.

        Returns:
            True if a reset token was issued

        Raises:
            NotFound: Unknown email while reset_reveal_unknown_email is on
            InternalFailure: If the store fails
        """
        with store_errors("password_reset_lookup_failed"):
            result = await self.user_service.get_by_email(email)

        if result is None:
            logger.info("password_reset_unknown_email")
            if self.settings.reset_reveal_unknown_email:
                raise NotFound("email not found")
            return False

        user, _ = result
        reset_token = uuid4()
        expires_at = datetime.now(timezone.utc) + self.reset_ttl

        with store_errors(
            "password_reset_store_failed",
            message="failed to store reset token",
            user_id=str(user.id),
        ):
            await self.user_service.set_reset_token(email, reset_token, expires_at)

        logger.info(
            "password_reset_initiated",
            user_id=str(user.id),
            expires_at=expires_at.isoformat(),
        )

        await self.email_service.send_password_reset_email(
            to_email=email,
            user_id=user.id,
            reset_token=reset_token,
            expires_at=expires_at,
        )
        return True

    async def complete_password_reset(self, reset_token: UUID, new_password: str) -> User:
        """Consume a reset token and rotate the user's password.

        Raises:
            InvalidOrExpiredToken: If the token is unknown, used, or expired
            InternalFailure: If the store fails
        """
        with store_errors("password_reset_complete_failed"):
            user = await self.user_service.reset_password_with_token(
                reset_token, new_password
            )

        if user is None:
            logger.warning("password_reset_invalid_token")
            raise InvalidOrExpiredToken()

        logger.info("password_reset_completed", user_id=str(user.id))
        return user
