"""User credential store."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from kaabe.database import get_pool
from kaabe.models.user import Role, User
from kaabe.services.password_service import PasswordHasher

logger = structlog.get_logger(__name__)

# Public columns; password_hash and reset fields are selected explicitly when needed
USER_COLUMNS = "id, email, first_name, last_name, role, wallet_id, created_at, updated_at"


class UserService:
    """Service for user CRUD and credential operations.

    "Not found" is reported as None/False; database errors propagate to the caller.
    """

    def __init__(self):
        self.hasher = PasswordHasher()

    async def create_user(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        role: Role = Role.USER,
        wallet_id: Optional[str] = None,
    ) -> User:
        """Create a new user with a hashed password.

        Args:
            email: Unique email (stored as given)
            password: Plain-text password (will be hashed)
            first_name: Given name
            last_name: Family name
            role: Platform role
            wallet_id: Optional linked wallet

        Returns:
            Created User model

        Raises:
            asyncpg.UniqueViolationError: If the email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = self.hasher.hash_password(password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO users (id, email, password_hash, first_name, last_name, role, wallet_id, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                user_id,
                email,
                password_hash,
                first_name,
                last_name,
                role.value,
                wallet_id,
                now,
                now,
            )

        logger.info("user_created", user_id=str(user_id), role=role.value)

        return User(
            id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            wallet_id=wallet_id,
            created_at=now,
            updated_at=now,
        )

    async def get_by_email(self, email: str) -> Optional[tuple[User, str]]:
        """Get a user by exact email.

        Args:
            email: Email to look up

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE email = $1
                """,
                email,
            )

        if row is None:
            return None

        return User.from_row(row), row["password_hash"]

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE id = $1
                """,
                user_id,
            )

        if row is None:
            return None

        return User.from_row(row)

    async def list_users(self) -> list[User]:
        """Return all users ordered by creation date."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                ORDER BY created_at ASC
                """
            )

        return [User.from_row(row) for row in rows]

    async def update_user(
        self,
        user_id: UUID,
        email: Optional[str] = None,
        password: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        role: Optional[Role] = None,
        wallet_id: Optional[str] = None,
    ) -> Optional[User]:
        """Update user fields that are not None.

        Args:
            user_id: UUID of the user to update
            email: New email (if provided)
            password: New plain-text password (if provided, will be hashed)
            first_name: New given name (if provided)
            last_name: New family name (if provided)
            role: New role (if provided)
            wallet_id: New wallet (if provided)

        Returns:
            Updated User model, or None if user not found
        """
        fields = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "role": role.value if role is not None else None,
            "wallet_id": wallet_id,
        }
        if password is not None:
            fields["password_hash"] = self.hasher.hash_password(password)

        set_clauses = []
        params = []
        for column, value in fields.items():
            if value is None:
                continue
            params.append(value)
            set_clauses.append(f"{column} = ${len(params)}")

        if not set_clauses:
            return await self.get_by_id(user_id)

        updated_columns = [c.split(" = ")[0] for c in set_clauses]

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")

        # user_id is the final parameter for the WHERE clause
        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)}
            RETURNING {USER_COLUMNS}
        """

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            return None

        logger.info("user_updated", user_id=str(user_id), fields_updated=updated_columns)

        return User.from_row(row)

    async def delete_user(self, user_id: UUID) -> bool:
        """Hard-delete a user; their session tokens cascade.

        Args:
            user_id: UUID of the user to delete

        Returns:
            True if the user was deleted, False if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)

        deleted = result == "DELETE 1"

        if deleted:
            logger.info("user_deleted", user_id=str(user_id))
        else:
            logger.warning("user_delete_not_found", user_id=str(user_id))

        return deleted

    async def update_password(self, user_id: UUID, password: str) -> bool:
        """Replace a user's password hash.

        Returns:
            True if a row was updated, False if the user does not exist
        """
        password_hash = self.hasher.hash_password(password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        return result == "UPDATE 1"

    async def set_reset_token(
        self, email: str, reset_token: UUID, expires_at: datetime
    ) -> bool:
        """Store a reset token on the user, replacing any pending one.

        Args:
            email: Email of the user requesting the reset
            reset_token: New reset token
            expires_at: Absolute expiry (UTC)

        Returns:
            True if a user with that email was updated
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET reset_token = $1, reset_token_expiry = $2, updated_at = $3
                WHERE email = $4
                """,
                reset_token,
                expires_at,
                datetime.now(timezone.utc),
                email,
            )

        return result == "UPDATE 1"

    async def get_by_reset_token(
        self, reset_token: UUID, now: Optional[datetime] = None
    ) -> Optional[User]:
        """Find the user holding an unexpired reset token.

        Args:
            reset_token: Reset token to look up
            now: Reference time for the expiry check (defaults to current UTC)

        Returns:
            User model or None if the token is unknown or expired
        """
        now = now or datetime.now(timezone.utc)

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE reset_token = $1 AND reset_token_expiry > $2
                """,
                reset_token,
                now,
            )

        if row is None:
            return None

        return User.from_row(row)

    async def clear_reset_token(self, user_id: UUID) -> bool:
        """Remove any pending reset token from the user."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET reset_token = NULL, reset_token_expiry = NULL, updated_at = $1
                WHERE id = $2
                """,
                datetime.now(timezone.utc),
                user_id,
            )

        return result == "UPDATE 1"

    async def reset_password_with_token(
        self,
        reset_token: UUID,
        password: str,
        now: Optional[datetime] = None,
    ) -> Optional[User]:
        """Consume an unexpired reset token and set a new password.

        The password change and the reset-token clear happen in one UPDATE,
        so a token can be used at most once.

        Args:
            reset_token: Reset token presented by the client
            password: New plain-text password (will be hashed)
            now: Reference time for the expiry check (defaults to current UTC)

        Returns:
            The updated User, or None if the token is unknown, used, or expired
        """
        now = now or datetime.now(timezone.utc)
        password_hash = self.hasher.hash_password(password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET password_hash = $1,
                    reset_token = NULL,
                    reset_token_expiry = NULL,
                    updated_at = $2
                WHERE reset_token = $3 AND reset_token_expiry > $2
                RETURNING {USER_COLUMNS}
                """,
                password_hash,
                now,
                reset_token,
            )

        if row is None:
            return None

        return User.from_row(row)
