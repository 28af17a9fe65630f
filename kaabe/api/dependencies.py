"""FastAPI dependencies for bearer-token authentication."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import Request

from kaabe.exceptions import Unauthenticated
from kaabe.services.auth_service import AuthService

BEARER_SCHEME = "Bearer"


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` value.

    The header must be exactly two space-separated parts with the literal
    scheme ``Bearer``.

    Raises:
        Unauthenticated: If the header is missing or malformed
    """
    if not authorization:
        raise Unauthenticated("Authorization token required")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise Unauthenticated("Authorization format must be Bearer <token>")

    return parts[1]


async def require_auth(request: Request) -> UUID:
    """Authenticate the request from its bearer token.

    On success the owner's id is stored in ``request.state.user_id`` and bound
    to the structlog context.

    Returns:
        UUID of the authenticated user

    Raises:
        Unauthenticated: If the token is missing, malformed, unknown, or expired
    """
    token = parse_bearer_token(request.headers.get("Authorization"))

    user_id = await AuthService().resolve_session(token)

    request.state.user_id = user_id
    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return user_id
