# tests/schemas/test_validators.py
"""
Tests for reusable schema validators and request models.
"""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from authcore.schemas.auth import ResetPasswordRequest, SignUpRequest, VerifyAccountRequest
from authcore.schemas.user_profile import ProfileUpdate
from authcore.schemas.validators import parse_iso_date, validate_birth_date, validate_username


class TestUsername:

    @pytest.mark.parametrize("value", ["alice", "a.b-c_d", "abc", "x" * 64])
    def test_valid(self, value):
        assert validate_username(value) == value

    def test_strips_whitespace(self):
        assert validate_username("  alice ") == "alice"

    @pytest.mark.parametrize("value", ["ab", "x" * 65, "has space", "alice@example.com", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            validate_username(value)


class TestDates:

    def test_parses_iso_date(self):
        assert parse_iso_date("1990-04-01") == date(1990, 4, 1)

    @pytest.mark.parametrize("value", ["01/04/1990", "1990-4-1", "1990-02-30", 19900401, None])
    def test_rejects_other_spellings(self, value):
        with pytest.raises(ValueError):
            parse_iso_date(value)

    def test_future_birth_date_rejected(self):
        with pytest.raises(ValueError):
            validate_birth_date((date.today() + timedelta(days=1)).isoformat())

    def test_ancient_birth_date_rejected(self):
        with pytest.raises(ValueError):
            validate_birth_date("1899-12-31")


class TestSignUpRequest:

    def base(self, **overrides) -> dict:
        body = {
            "username": "alice",
            "email": "alice@example.com",
            "password": "Password123",
            "date_of_birth": "1990-04-01",
        }
        body.update(overrides)
        return body

    def test_profile_fields_exclude_credentials(self):
        request = SignUpRequest(**self.base(city="Lisbon"))

        fields = request.profile_fields()

        assert "password" not in fields
        assert "username" not in fields
        assert "email" not in fields
        assert fields["city"] == "Lisbon"
        assert fields["date_of_birth"] == date(1990, 4, 1)

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            SignUpRequest(**self.base(email="not-an-email"))

    def test_requires_email_or_telephone(self):
        with pytest.raises(ValidationError):
            SignUpRequest(**self.base(email=None))


class TestCodeOrTokenRequests:

    def test_token_alone_is_enough(self):
        assert VerifyAccountRequest(token="abc").token == "abc"

    def test_identifier_and_code(self):
        request = VerifyAccountRequest(identifier="alice", code="123")

        assert (request.identifier, request.code) == ("alice", "123")

    @pytest.mark.parametrize("body", [{}, {"identifier": "alice"}, {"code": "123"}])
    def test_incomplete(self, body):
        with pytest.raises(ValidationError):
            VerifyAccountRequest(**body)

    def test_reset_checks_password_policy(self):
        with pytest.raises(ValidationError):
            ResetPasswordRequest(token="abc", new_password="nodigits")


class TestProfileUpdate:

    def test_changes_only_sent_fields(self):
        update = ProfileUpdate(city="Lisbon", country=None)

        assert update.changes() == [("city", "Lisbon"), ("country", None)]

    def test_unknown_field_forbidden(self):
        with pytest.raises(ValidationError):
            ProfileUpdate(is_verified=True)
