"""
Unit tests for token handling.
"""
from datetime import timedelta
from uuid import uuid4

from restoledger.core.security import create_access_token, decode_token


class TestJWTTokens:
    """Tests for JWT token functions."""

    def test_create_access_token(self):
        token = create_access_token(subject="manager-1", restaurant_id=uuid4())

        assert token is not None
        assert len(token) > 50

    def test_decode_carries_tenant(self):
        restaurant_id = uuid4()
        token = create_access_token(subject="manager-1", restaurant_id=restaurant_id)

        payload = decode_token(token)

        assert payload["sub"] == "manager-1"
        assert payload["restaurant_id"] == str(restaurant_id)
        assert payload["type"] == "access"

    def test_expired_token(self):
        token = create_access_token(
            subject="manager-1", restaurant_id=uuid4(), expires_delta=timedelta(seconds=-1)
        )

        assert decode_token(token) is None

    def test_garbage_token(self):
        assert decode_token("invalid.token.here") is None
