"""Session token persistence."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from kaabe.database import get_pool
from kaabe.models.user import SessionToken

logger = structlog.get_logger(__name__)


class TokenService:
    """Create and look up opaque session tokens in the tokens table.

    Lookups return None for "not found"; database errors propagate.
    """

    async def create_token(
        self,
        token_id: UUID,
        user_id: UUID,
        token: str,
        expires_at: datetime,
    ) -> SessionToken:
        """Persist a new session token.

        Args:
            token_id: Primary key for the token row
            user_id: Owning user UUID
            token: Opaque token string presented as the bearer credential
            expires_at: Absolute expiry (UTC)

        Returns:
            The stored SessionToken
        """
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO tokens (id, user_id, token, expires_at, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                token_id,
                user_id,
                token,
                expires_at,
                now,
                now,
            )

        logger.info(
            "session_token_created",
            token_id=str(token_id),
            user_id=str(user_id),
            expires_at=expires_at.isoformat(),
        )

        return SessionToken(
            id=token_id,
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )

    async def find_by_token_value(self, token: str) -> Optional[SessionToken]:
        """Look up a live (not soft-deleted) token by its opaque value.

        Expiry is not checked here; callers compare ``expires_at`` themselves.

        Args:
            token: Opaque token string

        Returns:
            SessionToken or None if no matching row exists
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, user_id, token, expires_at, created_at, updated_at, deleted_at
                FROM tokens
                WHERE token = $1 AND deleted_at IS NULL
                """,
                token,
            )

        if row is None:
            return None

        return SessionToken(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )
