"""
FastAPI dependencies for request-scoped tenant context.
"""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from restoledger.core.security import decode_token
from restoledger.events.bus import EventBus, event_bus

bearer_scheme = HTTPBearer(auto_error=False)


def get_restaurant_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UUID:
    """Resolve the tenant from the bearer token. The core never infers it."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    payload = decode_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise unauthorized

    try:
        return UUID(payload["restaurant_id"])
    except (KeyError, ValueError, TypeError):
        raise unauthorized


def get_event_bus() -> EventBus:
    """Process-wide event bus; overridden in tests."""
    return event_bus
