"""
Unit tests for authentication service.
Tests JWT tokens, phone validation, and email validation.
"""
import pytest
from datetime import timedelta
from golf_league.services import auth_service


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_create_and_verify_token(self):
        token = auth_service.create_access_token({"sub": "user-123"})
        assert isinstance(token, str)

        payload = auth_service.verify_token(token)
        assert payload["sub"] == "user-123"
        assert "exp" in payload

    def test_expired_token(self):
        token = auth_service.create_access_token({"sub": "user-123"}, expires_delta=timedelta(seconds=-10))
        assert auth_service.verify_token(token) is None

    def test_tampered_token(self):
        token = auth_service.create_access_token({"sub": "user-123"})
        assert auth_service.verify_token(token[:-2] + "xx") is None

    def test_garbage_token(self):
        assert auth_service.verify_token("not.a.token") is None


class TestGetUserId:

    def test_sub_claim(self):
        assert auth_service.get_user_id({"sub": "abc"}) == "abc"

    def test_legacy_user_id_claim(self):
        """Older tokens carry a numeric user_id."""
        assert auth_service.get_user_id({"user_id": 42}) == "42"

    def test_missing(self):
        assert auth_service.get_user_id({}) is None


class TestPhoneValidation:
    """Tests for phone number normalization and validation."""

    def test_normalize_us_number(self):
        assert auth_service.normalize_phone_number("(201) 555-0123") == "+12015550123"

    def test_normalize_e164_passthrough(self):
        assert auth_service.normalize_phone_number("+12015550123") == "+12015550123"

    def test_normalize_empty(self):
        with pytest.raises(ValueError, match="required"):
            auth_service.normalize_phone_number("  ")

    def test_normalize_garbage(self):
        with pytest.raises(ValueError, match="Invalid phone number"):
            auth_service.normalize_phone_number("call me")

    def test_validate_phone_number(self):
        assert auth_service.validate_phone_number("201-555-0123") is True
        assert auth_service.validate_phone_number("123") is False


class TestEmailValidation:

    @pytest.mark.parametrize("email", ["player@example.com", "first.last+golf@club.co.uk"])
    def test_valid(self, email):
        assert auth_service.validate_email(email) is True

    @pytest.mark.parametrize("email", ["", "player", "player@", "player@example", "two words@example.com"])
    def test_invalid(self, email):
        assert auth_service.validate_email(email) is False
