"""Unit tests for UserService (credential store) with mocked asyncpg."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from kaabe.models.user import Role, User
from kaabe.services.user_service import UserService


@pytest.fixture
def user_service():
    return UserService()


@pytest.fixture
def patched_pool(mock_pool):
    """Patch get_pool in the user service module; yields the mock connection."""
    pool, conn = mock_pool
    with patch("kaabe.services.user_service.get_pool", new_callable=AsyncMock) as mock_get_pool:
        mock_get_pool.return_value = pool
        yield conn


def _make_user_row(
    user_id=None,
    email="a@x.com",
    role="user",
    password_hash="$2b$12$hashedpasswordhere000000000000000000000000000000000000",
    wallet_id=None,
):
    """Create a dict that mimics an asyncpg Record for a users row."""
    now = datetime.now(timezone.utc)
    return {
        "id": user_id or uuid4(),
        "email": email,
        "first_name": "Ayaan",
        "last_name": "Warsame",
        "role": role,
        "wallet_id": wallet_id,
        "password_hash": password_hash,
        "created_at": now,
        "updated_at": now,
    }


class TestCreateUser:
    """Tests for UserService.create_user."""

    async def test_inserts_row_and_returns_user(self, user_service, patched_pool):
        user = await user_service.create_user(
            email="a@x.com",
            password="secret1",
            first_name="Ayaan",
            last_name="Warsame",
            role=Role.INFLUENCER,
            wallet_id="wallet-1",
        )

        assert isinstance(user, User)
        assert isinstance(user.id, UUID)
        assert user.email == "a@x.com"
        assert user.role is Role.INFLUENCER
        assert user.wallet_id == "wallet-1"
        assert "password" not in user.model_dump()
        assert "password_hash" not in user.model_dump()

    async def test_stores_hash_not_plaintext(self, user_service, patched_pool):
        await user_service.create_user(email="a@x.com", password="secret1")

        args = patched_pool.execute.call_args[0]
        assert "INSERT INTO users" in args[0]
        stored_hash = args[3]
        assert stored_hash != "secret1"
        assert user_service.hasher.verify_password("secret1", stored_hash)
        # Role is stored as its string value
        assert args[6] == "user"


class TestGetByEmail:
    """Tests for UserService.get_by_email."""

    async def test_returns_user_and_hash(self, user_service, patched_pool):
        row = _make_user_row(email="a@x.com")
        patched_pool.fetchrow.return_value = row

        result = await user_service.get_by_email("a@x.com")

        assert result is not None
        user, password_hash = result
        assert user.id == row["id"]
        assert password_hash == row["password_hash"]

    async def test_lookup_is_exact_match(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None

        await user_service.get_by_email("A@x.com")

        sql, email = patched_pool.fetchrow.call_args[0]
        assert "WHERE email = $1" in sql
        assert "LOWER" not in sql
        assert email == "A@x.com"

    async def test_returns_none_when_missing(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None
        assert await user_service.get_by_email("ghost@x.com") is None

    async def test_unknown_stored_role_coerced_to_user(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = _make_user_row(role="superuser")

        user, _ = await user_service.get_by_email("a@x.com")

        assert user.role is Role.USER


class TestGetById:
    """Tests for UserService.get_by_id."""

    async def test_returns_user(self, user_service, patched_pool):
        row = _make_user_row(role="admin")
        patched_pool.fetchrow.return_value = row

        user = await user_service.get_by_id(row["id"])

        assert user.id == row["id"]
        assert user.role is Role.ADMIN

    async def test_does_not_select_password_hash(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None

        assert await user_service.get_by_id(uuid4()) is None
        assert "password_hash" not in patched_pool.fetchrow.call_args[0][0]


class TestListUsers:
    """Tests for UserService.list_users."""

    async def test_returns_users_in_order(self, user_service, patched_pool):
        rows = [_make_user_row(email="a@x.com"), _make_user_row(email="b@x.com")]
        patched_pool.fetch.return_value = rows

        users = await user_service.list_users()

        assert [u.email for u in users] == ["a@x.com", "b@x.com"]
        assert "ORDER BY created_at" in patched_pool.fetch.call_args[0][0]


class TestUpdateUser:
    """Tests for UserService.update_user."""

    async def test_updates_only_provided_fields(self, user_service, patched_pool):
        user_id = uuid4()
        patched_pool.fetchrow.return_value = _make_user_row(user_id=user_id, email="new@x.com")

        user = await user_service.update_user(user_id, email="new@x.com", role=Role.ADMIN)

        assert user.email == "new@x.com"
        args = patched_pool.fetchrow.call_args[0]
        sql = args[0]
        assert "email = $1" in sql
        assert "role = $2" in sql
        assert "updated_at = $3" in sql
        assert "WHERE id = $4" in sql
        assert "first_name" not in sql.split("RETURNING")[0]
        assert args[1:3] == ("new@x.com", "admin")
        assert args[4] == user_id

    async def test_password_is_hashed(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = _make_user_row()

        await user_service.update_user(uuid4(), password="new-secret")

        args = patched_pool.fetchrow.call_args[0]
        assert "password_hash = $1" in args[0]
        assert args[1] != "new-secret"
        assert user_service.hasher.verify_password("new-secret", args[1])

    async def test_no_fields_returns_current_user(self, user_service, patched_pool):
        row = _make_user_row()
        patched_pool.fetchrow.return_value = row

        user = await user_service.update_user(row["id"])

        assert user.id == row["id"]
        assert "UPDATE" not in patched_pool.fetchrow.call_args[0][0]

    async def test_returns_none_when_missing(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None
        assert await user_service.update_user(uuid4(), first_name="X") is None


class TestDeleteUser:
    """Tests for UserService.delete_user."""

    async def test_returns_true_when_deleted(self, user_service, patched_pool):
        patched_pool.execute.return_value = "DELETE 1"
        assert await user_service.delete_user(uuid4()) is True

    async def test_returns_false_when_missing(self, user_service, patched_pool):
        patched_pool.execute.return_value = "DELETE 0"
        assert await user_service.delete_user(uuid4()) is False


class TestUpdatePassword:
    """Tests for UserService.update_password."""

    async def test_writes_new_hash(self, user_service, patched_pool):
        user_id = uuid4()
        patched_pool.execute.return_value = "UPDATE 1"

        assert await user_service.update_password(user_id, "fresh-secret") is True

        args = patched_pool.execute.call_args[0]
        assert "SET password_hash = $1" in args[0]
        assert user_service.hasher.verify_password("fresh-secret", args[1])
        assert args[3] == user_id


class TestResetTokenStore:
    """Tests for the reset-token columns on users."""

    async def test_set_reset_token_overwrites_by_email(self, user_service, patched_pool):
        token = uuid4()
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=15)
        patched_pool.execute.return_value = "UPDATE 1"

        assert await user_service.set_reset_token("a@x.com", token, expires_at) is True

        args = patched_pool.execute.call_args[0]
        assert "SET reset_token = $1, reset_token_expiry = $2" in args[0]
        assert args[1] == token
        assert args[2] == expires_at
        assert args[4] == "a@x.com"

    async def test_set_reset_token_unknown_email(self, user_service, patched_pool):
        patched_pool.execute.return_value = "UPDATE 0"
        assert await user_service.set_reset_token("ghost@x.com", uuid4(), datetime.now(timezone.utc)) is False

    async def test_get_by_reset_token_checks_expiry_in_query(self, user_service, patched_pool):
        token = uuid4()
        now = datetime.now(timezone.utc)
        patched_pool.fetchrow.return_value = _make_user_row()

        user = await user_service.get_by_reset_token(token, now=now)

        assert user is not None
        sql, passed_token, passed_now = patched_pool.fetchrow.call_args[0]
        assert "reset_token_expiry > $2" in sql
        assert passed_token == token
        assert passed_now == now

    async def test_get_by_reset_token_missing(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None
        assert await user_service.get_by_reset_token(uuid4()) is None

    async def test_clear_reset_token(self, user_service, patched_pool):
        user_id = uuid4()
        patched_pool.execute.return_value = "UPDATE 1"

        assert await user_service.clear_reset_token(user_id) is True

        args = patched_pool.execute.call_args[0]
        assert "reset_token = NULL" in args[0]
        assert "reset_token_expiry = NULL" in args[0]
        assert args[2] == user_id


class TestResetPasswordWithToken:
    """Tests for the single-statement reset completion."""

    async def test_updates_hash_and_clears_token_in_one_statement(self, user_service, patched_pool):
        token = uuid4()
        now = datetime.now(timezone.utc)
        row = _make_user_row()
        patched_pool.fetchrow.return_value = row

        user = await user_service.reset_password_with_token(token, "brand-new", now=now)

        assert user.id == row["id"]
        patched_pool.fetchrow.assert_awaited_once()
        patched_pool.execute.assert_not_awaited()

        sql, new_hash, passed_now, passed_token = patched_pool.fetchrow.call_args[0]
        assert "UPDATE users" in sql
        assert "password_hash = $1" in sql
        assert "reset_token = NULL" in sql
        assert "reset_token_expiry = NULL" in sql
        assert "WHERE reset_token = $3 AND reset_token_expiry > $2" in sql
        assert user_service.hasher.verify_password("brand-new", new_hash)
        assert passed_now == now
        assert passed_token == token

    async def test_returns_none_for_unknown_or_expired_token(self, user_service, patched_pool):
        patched_pool.fetchrow.return_value = None
        assert await user_service.reset_password_with_token(uuid4(), "brand-new") is None
