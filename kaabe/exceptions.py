"""Error taxonomy for the authentication core.

Each error carries the HTTP status the routing layer maps it to and a
user-safe message. Internal detail goes to the logs, never into ``message``.
"""

from contextlib import contextmanager
from typing import Any, Iterator

import asyncpg
import structlog
from fastapi import status

logger = structlog.get_logger(__name__)


class KaabeError(Exception):
    """Base class for errors rendered as ``{"error": message}``.

    Attributes:
        message: User-safe explanation returned to the client
        status_code: HTTP status the error maps to
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(KaabeError):
    """Malformed input, e.g. an unparseable identifier."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid input"


class Unauthenticated(KaabeError):
    """Missing, malformed, unknown, or expired bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class Unauthorized(KaabeError):
    """Credential mismatch during authentication."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "invalid email or password"


class InvalidOrExpiredToken(KaabeError):
    """Reset token unknown, already used, or past its expiry."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid or expired reset token"


class NotFound(KaabeError):
    """Requested resource does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "not found"


class Conflict(KaabeError):
    """Duplicate email or other unique external reference."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "conflict"


class InternalFailure(KaabeError):
    """Storage or hashing failure; detail is logged, not returned."""


@contextmanager
def store_errors(
    event: str, message: str | None = None, **context: Any
) -> Iterator[None]:
    """Convert database failures inside the block into InternalFailure.

    The caught error is logged under ``event``; the client only sees the
    opaque InternalFailure message. KaabeError subclasses pass through.

    Args:
        event: Log event name for the failure
        message: Client-facing message (defaults to the generic one)
        context: Extra fields bound to the log entry
    """
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError) as e:
        logger.error(event, error=str(e), error_type=type(e).__name__, **context)
        raise InternalFailure(message) from e
