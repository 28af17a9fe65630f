"""Unit tests for TokenService with a mocked asyncpg pool."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from kaabe.models.user import SessionToken
from kaabe.services.token_service import TokenService


def _make_token_row(user_id=None, token="opaque-token", expires_at=None):
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "user_id": user_id or uuid4(),
        "token": token,
        "expires_at": expires_at or now + timedelta(hours=24),
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }


class TestCreateToken:
    """Tests for TokenService.create_token."""

    async def test_inserts_row_and_returns_token(self, mock_pool):
        pool, conn = mock_pool
        token_id, user_id = uuid4(), uuid4()
        expires_at = datetime.now(timezone.utc) + timedelta(hours=24)

        with patch("kaabe.services.token_service.get_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = pool
            token = await TokenService().create_token(
                token_id=token_id,
                user_id=user_id,
                token="opaque-token",
                expires_at=expires_at,
            )

        assert isinstance(token, SessionToken)
        assert token.id == token_id
        assert token.user_id == user_id
        assert token.token == "opaque-token"
        assert token.expires_at == expires_at

        conn.execute.assert_awaited_once()
        args = conn.execute.call_args[0]
        assert "INSERT INTO tokens" in args[0]
        assert args[1:5] == (token_id, user_id, "opaque-token", expires_at)


class TestFindByTokenValue:
    """Tests for TokenService.find_by_token_value."""

    async def test_returns_token_for_matching_row(self, mock_pool):
        pool, conn = mock_pool
        row = _make_token_row(token="abc")
        conn.fetchrow.return_value = row

        with patch("kaabe.services.token_service.get_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = pool
            token = await TokenService().find_by_token_value("abc")

        assert token is not None
        assert token.user_id == row["user_id"]
        assert token.expires_at == row["expires_at"]

    async def test_returns_none_when_missing(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        with patch("kaabe.services.token_service.get_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = pool
            assert await TokenService().find_by_token_value("missing") is None

    async def test_query_skips_soft_deleted_tokens(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        with patch("kaabe.services.token_service.get_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = pool
            await TokenService().find_by_token_value("abc")

        sql, value = conn.fetchrow.call_args[0]
        assert "deleted_at IS NULL" in sql
        assert value == "abc"
