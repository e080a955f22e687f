"""
Signed bearer token creation and validation.

Handles:
- Access tokens (stateless, for API authentication)
- Purpose-tagged link tokens (password reset, email verification, OTP challenge)
- Validation with distinct failure reasons

Tokens are HS256/384/512 JWTs signed with the single process-wide secret
from Settings. Every token carries:
- sub:  user id
- type: purpose tag (access, password-reset, email-verify, otp-challenge)
- iat:  issued at
- exp:  expiry (mandatory, always checked, small leeway for clock skew)
- jti:  unique token id (denylist key for sign-out)

Security notes:
- A token of one purpose is never accepted for another purpose
- Failure reasons (malformed / signature / expired / purpose) are kept
  apart for logging; clients always get the same "Invalid token" message
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from authcore.config import Settings
from authcore.services.exceptions import ServiceError, TokenFailure

logger = logging.getLogger(__name__)

# Claims managed by the codec itself; callers cannot override them
_RESERVED_CLAIMS = frozenset({"sub", "type", "iat", "exp", "jti"})
_REQUIRED_CLAIMS = frozenset({"sub", "iat", "exp", "jti"})


class TokenPurpose(str, enum.Enum):
    ACCESS = "access"
    PASSWORD_RESET = "password-reset"
    EMAIL_VERIFY = "email-verify"
    OTP_CHALLENGE = "otp-challenge"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token and its identity."""
    token: str
    jti: str
    expires_at: datetime
    expires_in: int


@dataclass(frozen=True)
class TokenClaims:
    """Verified token contents."""
    subject: str
    purpose: TokenPurpose
    issued_at: datetime
    expires_at: datetime
    jti: str
    extra: dict[str, Any] = field(default_factory=dict)


class TokenCodec:
    """
    Signs and verifies compact bearer tokens.

    The codec is stateless apart from its key material; revocation is the
    denylist's job (see ``denylist.py``).
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", leeway_seconds: int = 5) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty secret key")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._leeway = leeway_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            leeway_seconds=settings.jwt_leeway_seconds,
        )

    def issue(
        self,
        subject: str,
        purpose: TokenPurpose,
        ttl: timedelta,
        extra_claims: dict[str, Any] | None = None,
    ) -> IssuedToken:
        """
        Create a new signed token.

        Args:
            subject: The user id the token is about
            purpose: What the token may be used for
            ttl: Lifetime of the token
            extra_claims: Additional non-reserved claims (e.g. a one-time code)

        Returns:
            IssuedToken with the encoded string, jti and expiry

        Example:
            issued = codec.issue(user.id, TokenPurpose.ACCESS, timedelta(hours=1))
        """
        now = datetime.now(timezone.utc).replace(microsecond=0)
        expire = now + ttl
        jti = uuid.uuid4().hex

        payload: dict[str, Any] = {}
        if extra_claims:
            clashing = _RESERVED_CLAIMS.intersection(extra_claims)
            if clashing:
                raise ValueError(f"Reserved claims cannot be overridden: {sorted(clashing)}")
            payload.update(extra_claims)
        payload.update({
            "sub": str(subject),
            "type": purpose.value,
            "iat": now,
            "exp": expire,
            "jti": jti,
        })

        try:
            token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        except JWTError as e:
            logger.error(f"Token signing failed: {type(e).__name__}")
            raise ServiceError.internal("token_sign") from e

        return IssuedToken(
            token=token,
            jti=jti,
            expires_at=expire,
            expires_in=int(ttl.total_seconds()),
        )

    def verify(self, token: str, expected_purpose: TokenPurpose) -> TokenClaims:
        """
        Validate a token and return its claims.

        Args:
            token: The encoded token
            expected_purpose: The purpose the calling operation requires

        Returns:
            TokenClaims for a well-formed, correctly signed, unexpired token
            of the expected purpose

        Raises:
            ServiceError(UNAUTHORIZED): with context ``reason`` set to
                TokenFailure.MALFORMED, SIGNATURE, EXPIRED or PURPOSE
        """
        # Structure first: a token that does not even parse is "malformed",
        # as opposed to one that parses but fails the signature check.
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError:
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)

        if header.get("alg") != self._algorithm:
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)

        # Claim presence is checked after the signature; see _REQUIRED_CLAIMS
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"leeway": self._leeway},
            )
        except ExpiredSignatureError:
            raise ServiceError.invalid_token(TokenFailure.EXPIRED)
        except JWTClaimsError:
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)
        except JWTError:
            raise ServiceError.invalid_token(TokenFailure.SIGNATURE)

        if not _REQUIRED_CLAIMS.issubset(payload):
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)

        try:
            purpose = TokenPurpose(payload.get("type"))
        except ValueError:
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)

        if purpose is not expected_purpose:
            raise ServiceError.invalid_token(TokenFailure.PURPOSE)

        try:
            claims = TokenClaims(
                subject=str(payload["sub"]),
                purpose=purpose,
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=str(payload["jti"]),
                extra={k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS},
            )
        except (KeyError, TypeError, ValueError, OverflowError):
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)

        return claims
