"""
JWT handling for tenant resolution.

Tokens are issued by the authentication service. This API only verifies them
and reads the ``restaurant_id`` claim.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from restoledger.core.config import get_settings

settings = get_settings()


def create_access_token(subject: str | Any, restaurant_id: str | Any, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token scoped to one restaurant."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "restaurant_id": str(restaurant_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Decode and validate a JWT token. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None
