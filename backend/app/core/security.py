"""
JWT token utilities.

Tokens are minted by the auth service with the shared SECRET_KEY; this app
only needs to read the *sub* claim. create_access_token exists for local
tooling and tests.
Never import DB models here — keep this layer pure.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.core.config import settings

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


def create_access_token(
    subject: Any,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT whose *sub* is str(subject)."""
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_LIFETIME)
    payload = {"sub": str(subject), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> str | None:
    """
    Decode a JWT and return the *sub* claim (user UUID string).
    Returns None on any error (expired, tampered, malformed).
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub is not None else None
