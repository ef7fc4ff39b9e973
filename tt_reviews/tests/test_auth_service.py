"""
Unit tests for authentication service.
Tests JWT tokens and email normalization.
"""
import jwt
import pytest
from datetime import timedelta
from tt_reviews.services import auth_service


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_verify_token_valid(self):
        """Test verifying a valid token."""
        token = auth_service.create_access_token({"user_id": 1, "email": "fan@example.com"})

        decoded = auth_service.verify_token(token)
        assert decoded is not None
        assert decoded["user_id"] == 1
        assert decoded["email"] == "fan@example.com"
        assert "exp" in decoded

    def test_verify_token_invalid(self):
        """Test verifying a malformed token."""
        assert auth_service.verify_token("invalid_token_string") is None

    def test_verify_token_expired(self):
        """Test verifying an expired token."""
        token = auth_service.create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-1))
        assert auth_service.verify_token(token) is None

    def test_verify_token_wrong_secret(self):
        """Tokens signed with another key are rejected."""
        token = jwt.encode({"user_id": 1}, "some-other-secret", algorithm="HS256")
        assert auth_service.verify_token(token) is None

    def test_create_does_not_mutate_claims(self):
        data = {"user_id": 1}
        auth_service.create_access_token(data)
        assert data == {"user_id": 1}


class TestEmailNormalization:
    @pytest.mark.parametrize(
        "raw,expected",
        [("Admin@Example.com", "admin@example.com"), ("  fan@example.com \n", "fan@example.com")],
    )
    def test_normalize_email(self, raw, expected):
        assert auth_service.normalize_email(raw) == expected
