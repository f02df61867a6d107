"""Identity helpers for upstream auth tokens."""

from __future__ import annotations

import time

import jwt


TOKEN_ALGORITHM = "HS256"
TOKEN_TTL_SECONDS = 60 * 60


def issue_token(user_id: str, secret: str, ttl_seconds: int = TOKEN_TTL_SECONDS) -> str:
    """Sign an access token the way the upstream auth service does."""
    now = int(time.time())
    payload = {
        "id": user_id,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def resolve_user_id(token: str, secret: str) -> str | None:
    """Return the user id carried by a valid token, otherwise None."""
    try:
        claims = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    user_id = claims.get("id")
    if not isinstance(user_id, str) or user_id == "":
        return None
    return user_id
