"""JWT helpers for identifying the acting user.

Tokens are issued by the platform's auth service; this service only needs to
verify them and read the subject. ``create_access_token`` exists for local
tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from medibook.config import settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode, normally including ``sub``
        expires_delta: Optional lifetime, defaults to the configured one

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {**data, "exp": issued_at + lifetime, "iat": issued_at, "type": "access"}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Verify an access token and return its claims.

    Returns:
        Claims, or None when the signature, expiry or token type is wrong
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None
    return payload
