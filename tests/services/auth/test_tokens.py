# tests/services/auth/test_tokens.py
"""
Tests for signed bearer tokens.

Tests:
- Token issuance (claims, unique jti, expiry)
- Validation of each purpose
- Distinct failure reasons (malformed, signature, expired, purpose)
- Reserved claim protection
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from authcore.services.auth.tokens import TokenCodec, TokenPurpose
from authcore.services.exceptions import ErrorKind, INVALID_TOKEN_MESSAGE, ServiceError, TokenFailure

TEST_SECRET = "test-secret-key-at-least-32-chars-long"

ONE_HOUR = timedelta(hours=1)


def assert_rejected(codec: TokenCodec, token: str, purpose: TokenPurpose, reason: TokenFailure) -> None:
    with pytest.raises(ServiceError) as exc_info:
        codec.verify(token, purpose)
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert exc_info.value.message == INVALID_TOKEN_MESSAGE
    assert exc_info.value.reason is reason


# =============================================================================
# TEST: ISSUANCE
# =============================================================================


class TestTokenIssue:
    """Tests for token creation."""

    def test_issue_returns_verifiable_token(self, codec: TokenCodec):
        issued = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        claims = codec.verify(issued.token, TokenPurpose.ACCESS)

        assert claims.subject == "user-1"
        assert claims.purpose is TokenPurpose.ACCESS
        assert claims.jti == issued.jti
        assert claims.expires_at == issued.expires_at

    def test_expires_in_matches_ttl(self, codec: TokenCodec):
        issued = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        assert issued.expires_in == 3600
        assert issued.expires_at > datetime.now(timezone.utc)

    def test_every_token_has_unique_jti(self, codec: TokenCodec):
        first = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)
        second = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        assert first.jti != second.jti
        assert first.token != second.token

    def test_extra_claims_round_trip(self, codec: TokenCodec):
        issued = codec.issue("user-1", TokenPurpose.PASSWORD_RESET, ONE_HOUR, extra_claims={"code": "abc"})

        claims = codec.verify(issued.token, TokenPurpose.PASSWORD_RESET)

        assert claims.extra == {"code": "abc"}

    def test_reserved_claims_cannot_be_overridden(self, codec: TokenCodec):
        with pytest.raises(ValueError):
            codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR, extra_claims={"type": "otp-challenge"})

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec("")


# =============================================================================
# TEST: VALIDATION FAILURES
# =============================================================================


class TestTokenVerify:
    """Tests for the failure reasons of verify()."""

    def test_purpose_mismatch(self, codec: TokenCodec):
        """A reset token must not authenticate API calls."""
        issued = codec.issue("user-1", TokenPurpose.PASSWORD_RESET, ONE_HOUR)

        assert_rejected(codec, issued.token, TokenPurpose.ACCESS, TokenFailure.PURPOSE)

    @pytest.mark.parametrize("purpose", [TokenPurpose.EMAIL_VERIFY, TokenPurpose.OTP_CHALLENGE])
    def test_access_token_not_accepted_for_other_purposes(self, codec: TokenCodec, purpose):
        issued = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        assert_rejected(codec, issued.token, purpose, TokenFailure.PURPOSE)

    def test_expired_token(self, codec: TokenCodec):
        issued = codec.issue("user-1", TokenPurpose.ACCESS, timedelta(seconds=-60))

        assert_rejected(codec, issued.token, TokenPurpose.ACCESS, TokenFailure.EXPIRED)

    def test_expiry_within_leeway_accepted(self):
        """Small clock skew is tolerated."""
        codec = TokenCodec(TEST_SECRET, leeway_seconds=30)
        issued = codec.issue("user-1", TokenPurpose.ACCESS, timedelta(seconds=-5))

        assert codec.verify(issued.token, TokenPurpose.ACCESS).subject == "user-1"

    def test_expired_without_leeway(self):
        codec = TokenCodec(TEST_SECRET, leeway_seconds=0)
        issued = codec.issue("user-1", TokenPurpose.ACCESS, timedelta(seconds=-2))

        assert_rejected(codec, issued.token, TokenPurpose.ACCESS, TokenFailure.EXPIRED)

    def test_wrong_signing_key(self, codec: TokenCodec):
        other = TokenCodec("another-secret-key-at-least-32-characters")
        issued = other.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        assert_rejected(codec, issued.token, TokenPurpose.ACCESS, TokenFailure.SIGNATURE)

    def test_tampered_payload(self, codec: TokenCodec):
        issued = codec.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)
        header, _, signature = issued.token.split(".")
        forged_payload = jwt.encode(
            {"sub": "admin", "type": "access", "jti": "x", "iat": 0, "exp": 9999999999},
            "irrelevant-key",
        ).split(".")[1]

        forged = ".".join([header, forged_payload, signature])

        assert_rejected(codec, forged, TokenPurpose.ACCESS, TokenFailure.SIGNATURE)

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "Bearer xyz"])
    def test_malformed_token(self, codec: TokenCodec, token):
        assert_rejected(codec, token, TokenPurpose.ACCESS, TokenFailure.MALFORMED)

    def test_algorithm_mismatch_is_malformed(self, codec: TokenCodec):
        other = TokenCodec(TEST_SECRET, algorithm="HS512")
        issued = other.issue("user-1", TokenPurpose.ACCESS, ONE_HOUR)

        assert_rejected(codec, issued.token, TokenPurpose.ACCESS, TokenFailure.MALFORMED)

    def test_unknown_purpose_is_malformed(self, codec: TokenCodec):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh", "jti": "j", "iat": now, "exp": now + ONE_HOUR},
            TEST_SECRET,
            algorithm="HS256",
        )

        assert_rejected(codec, token, TokenPurpose.ACCESS, TokenFailure.MALFORMED)

    @pytest.mark.parametrize("missing", ["sub", "iat", "exp", "jti"])
    def test_signed_token_missing_claim_is_malformed(self, codec: TokenCodec, missing):
        now = datetime.now(timezone.utc)
        claims = {"sub": "user-1", "type": "access", "jti": "j", "iat": now, "exp": now + ONE_HOUR}
        del claims[missing]
        token = jwt.encode(claims, TEST_SECRET, algorithm="HS256")

        assert_rejected(codec, token, TokenPurpose.ACCESS, TokenFailure.MALFORMED)

    def test_signed_token_with_invalid_claim_type_is_malformed(self, codec: TokenCodec):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": 42, "type": "access", "jti": "j", "iat": now, "exp": now + ONE_HOUR},
            TEST_SECRET,
            algorithm="HS256",
        )

        assert_rejected(codec, token, TokenPurpose.ACCESS, TokenFailure.MALFORMED)
