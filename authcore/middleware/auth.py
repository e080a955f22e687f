# authcore/middleware/auth.py
"""
Bearer token authentication for protected routes.

Steps, in order:
1. Parse ``Authorization: Bearer <token>`` (scheme case-insensitive,
   exactly two space-separated parts)
2. Verify signature, expiry and purpose ``access`` with the TokenCodec
3. Reject tokens whose ``jti`` is on the denylist

No user lookup happens here: a valid, unrevoked access token is enough.
Routes that need the user row load it themselves.

Usage:
    @router.get("/profile")
    def get_profile(subject: AuthenticatedSubject = Depends(get_current_subject)):
        ...
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from authcore.services.auth.denylist import TokenDenylist, TokenState
from authcore.services.auth.tokens import TokenClaims, TokenCodec, TokenPurpose
from authcore.services.exceptions import ServiceError, TokenFailure

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


@dataclass(frozen=True)
class AuthenticatedSubject:
    """The caller identified by a valid access token."""
    user_id: str
    claims: TokenClaims


class AuthMiddleware:
    """Validates bearer credentials against the codec and the denylist."""

    def __init__(self, codec: TokenCodec, denylist: TokenDenylist) -> None:
        self._codec = codec
        self._denylist = denylist

    @staticmethod
    def parse_authorization(header: str | None) -> str:
        """
        Extract the token from an Authorization header value.

        Raises:
            ServiceError(UNAUTHORIZED): Missing header, wrong scheme or
                empty token
        """
        if not header:
            raise ServiceError.invalid_token(TokenFailure.MISSING)

        parts = header.split(" ")
        if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME or not parts[1]:
            raise ServiceError.invalid_token(TokenFailure.MALFORMED)
        return parts[1]

    def authenticate(self, db: Session, authorization: str | None) -> AuthenticatedSubject:
        """
        Resolve the caller from an Authorization header value.

        Returns:
            AuthenticatedSubject for a valid, unrevoked access token

        Raises:
            ServiceError(UNAUTHORIZED): reason in context is one of
                TokenFailure.MISSING, MALFORMED, SIGNATURE, EXPIRED,
                PURPOSE, REVOKED
        """
        try:
            token = self.parse_authorization(authorization)
            claims = self._codec.verify(token, TokenPurpose.ACCESS)

            if self._denylist.state(db, claims.jti) is TokenState.REVOKED:
                raise ServiceError.invalid_token(TokenFailure.REVOKED)
        except ServiceError as e:
            if e.reason is not None:
                logger.warning(f"Bearer token rejected: {e.reason.value}")
            raise

        return AuthenticatedSubject(user_id=claims.subject, claims=claims)
