"""User identity and session token models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class Role(str, Enum):
    """Platform roles. Unknown stored values fall back to USER."""

    USER = "user"
    ADMIN = "admin"
    INFLUENCER = "influencer"

    @classmethod
    def coerce(cls, value: Any) -> "Role":
        """Map a stored value to a Role, defaulting to USER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.USER


class User(BaseModel):
    """A registered identity. Never carries the password hash."""

    id: UUID
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.USER
    wallet_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, v: Any) -> Role:
        """Coerce unknown roles read from storage to 'user'."""
        return Role.coerce(v)

    @classmethod
    def from_row(cls, row) -> "User":
        """Build a User from an asyncpg Record (or mapping) of the users table."""
        wallet_id = row["wallet_id"]
        return cls(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            role=row["role"],
            wallet_id=str(wallet_id) if wallet_id is not None else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class SessionToken(BaseModel):
    """An opaque bearer token issued on authentication."""

    id: UUID
    user_id: UUID
    token: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """Return True when the token's expiry is at or before ``now``."""
        return self.expires_at <= now
