"""
Credential lifecycle service.

Handles:
- Sign-up (user + profile + default role, verification code delivery)
- Sign-in with username/password
- OTP sign-in (request a code, verify it for an access token)
- Forgot / reset password
- Account verification and resending the verification code
- Sign-out (denylisting the current access token)

Security features:
- Unknown user, wrong password and unverified account produce the same error
- Unknown users still cost one password verification (timing)
- Code requests never reveal whether an identifier exists
- Every one-time code is single-use; link tokens are only valid while the
  code they carry is still live
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cached_property
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.config import Settings
from authcore.models import User
from authcore.services.auth.codes import OneTimeCodeStore
from authcore.services.auth.delivery import CodeDeliveryChannel, Recipient, compose_message
from authcore.services.auth.denylist import TokenDenylist
from authcore.services.auth.password import PasswordHasher, password_policy_violation
from authcore.services.auth.tokens import TokenClaims, TokenCodec, TokenPurpose
from authcore.services.exceptions import ServiceError
from authcore.services.user_store import UserStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """Bearer credential returned by sign-in and OTP verification."""
    access_token: str
    expires_in: int
    expires_at: datetime
    token_type: str = "bearer"


# Frontend routes that accept a link token
_LINK_PATHS = {
    TokenPurpose.PASSWORD_RESET: "/reset-password",
    TokenPurpose.EMAIL_VERIFY: "/verify-account",
}


class CredentialService:
    """
    Orchestrates the credential flows over the stores, codec and delivery.

    One instance is built by ``create_app()`` and shared across requests;
    it holds no per-request state. Every method takes the request's Session.
    """

    def __init__(
        self,
        settings: Settings,
        hasher: PasswordHasher,
        codec: TokenCodec,
        codes: OneTimeCodeStore,
        denylist: TokenDenylist,
        users: UserStore,
        delivery: CodeDeliveryChannel,
    ) -> None:
        self._settings = settings
        self._hasher = hasher
        self._codec = codec
        self._codes = codes
        self._denylist = denylist
        self._users = users
        self._delivery = delivery

        self._ttls = {
            TokenPurpose.ACCESS: timedelta(seconds=settings.access_token_ttl_seconds),
            TokenPurpose.OTP_CHALLENGE: timedelta(seconds=settings.otp_ttl_seconds),
            TokenPurpose.PASSWORD_RESET: timedelta(seconds=settings.password_reset_ttl_seconds),
            TokenPurpose.EMAIL_VERIFY: timedelta(seconds=settings.email_verification_ttl_seconds),
        }

    @cached_property
    def _dummy_hash(self) -> str:
        # Verified against when the username is unknown so that sign-in takes
        # the same time whether or not the account exists.
        return self._hasher.hash(secrets.token_urlsafe(16))

    # =========================================================================
    # SIGN-UP / SIGN-IN
    # =========================================================================

    def sign_up(
        self,
        db: Session,
        username: str,
        password: str,
        email: str | None = None,
        profile: dict[str, Any] | None = None,
    ) -> User:
        """
        Register a new, unverified account and send its verification code.

        Args:
            db: Database session
            username: Unique login name
            password: Plaintext password (checked against the policy)
            email: Optional unique email address
            profile: Profile fields (date_of_birth required, telephone
                optional)

        Returns:
            The created User

        Raises:
            ServiceError(VALIDATION): Weak password, no delivery address,
                missing date of birth
            ServiceError(CONFLICT): Username or email already taken
            ServiceError(INTERNAL): Hashing, storage or delivery failure
        """
        profile = dict(profile or {})

        violation = password_policy_violation(password)
        if violation:
            raise ServiceError.validation(violation, field="password")
        if not email and not profile.get("telephone"):
            raise ServiceError.validation(
                "Either email or telephone is required to verify the account",
                field="email",
            )
        if profile.get("date_of_birth") is None:
            raise ServiceError.validation("date_of_birth is required (YYYY-MM-DD)", field="date_of_birth")

        contact = Recipient(user_id="", username=username, email=email, telephone=profile.get("telephone"))
        if not self._delivery.can_reach(contact):
            logger.warning(f"Sign-up rejected for '{username}': no deliverable address")
            raise ServiceError.validation(
                "An email address is required to verify the account",
                field="email",
            )

        hashed = self._hasher.hash(password)

        # Account, verification code and delivery succeed or fail together
        try:
            user = self._users.create(
                db,
                username=username,
                email=email,
                hashed_password=hashed,
                profile=profile,
                role_slug=self._settings.default_role_slug,
                commit=False,
            )
            self._issue_and_deliver(db, user, TokenPurpose.EMAIL_VERIFY, commit=False)
            db.commit()
        except ServiceError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to complete sign-up for '{username}': {e}", exc_info=True)
            raise ServiceError.internal("sign_up") from e

        logger.info(f"User signed up: {user.id}")
        return user

    def sign_in(self, db: Session, username: str, password: str) -> AccessToken:
        """
        Authenticate with username and password.

        Raises:
            ServiceError(UNAUTHORIZED): Unknown user, wrong password or
                unverified account (identical message for all three)
        """
        user = self._users.find_by_username(db, username)

        if user is None:
            self._hasher.verify(password, self._dummy_hash)
            logger.warning("Sign-in failed: unknown user")
            raise ServiceError.unauthorized(reason="unknown_user")

        if not self._hasher.verify(password, user.hashed_password):
            logger.warning(f"Sign-in failed: wrong password for user {user.id}")
            raise ServiceError.unauthorized(reason="wrong_password")

        if not user.is_verified:
            logger.warning(f"Sign-in failed: user {user.id} not verified")
            raise ServiceError.unauthorized(reason="unverified")

        if self._hasher.needs_rehash(user.hashed_password):
            self._users.rehash_password(db, user, self._hasher.hash(password))

        logger.info(f"User signed in: {user.id}")
        return self._issue_access_token(user)

    # =========================================================================
    # OTP
    # =========================================================================

    def request_otp(self, db: Session, identifier: str) -> None:
        """
        Send a sign-in code to a verified account.

        Returns normally whether or not the identifier exists.
        """
        user = self._users.find_by_identifier(db, identifier)
        if user is None:
            logger.info("OTP requested for unknown identifier")
            return
        if not user.is_verified:
            logger.info(f"OTP requested for unverified user {user.id}")
            return

        self._issue_and_deliver(db, user, TokenPurpose.OTP_CHALLENGE)

    def verify_otp(self, db: Session, identifier: str, code: str) -> AccessToken:
        """
        Exchange a sign-in code for an access token.

        Raises:
            ServiceError(UNAUTHORIZED): Unknown identifier, wrong, expired or
                already used code, unverified account
        """
        user = self._users.find_by_identifier(db, identifier)
        if user is None:
            logger.warning("OTP verification failed: unknown identifier")
            raise ServiceError.invalid_code(TokenPurpose.OTP_CHALLENGE.value)

        if not self._codes.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code):
            raise ServiceError.invalid_code(TokenPurpose.OTP_CHALLENGE.value)

        if not user.is_verified:
            logger.warning(f"OTP verification failed: user {user.id} not verified")
            raise ServiceError.invalid_code(TokenPurpose.OTP_CHALLENGE.value)

        logger.info(f"User signed in with OTP: {user.id}")
        return self._issue_access_token(user)

    # =========================================================================
    # PASSWORD RESET
    # =========================================================================

    def forgot_password(self, db: Session, identifier: str) -> None:
        """
        Send a password reset code and link.

        Returns normally whether or not the identifier exists.
        """
        user = self._users.find_by_identifier(db, identifier)
        if user is None:
            logger.info("Password reset requested for unknown identifier")
            return

        self._issue_and_deliver(db, user, TokenPurpose.PASSWORD_RESET)

    def reset_password(
        self,
        db: Session,
        new_password: str,
        identifier: str | None = None,
        code: str | None = None,
        token: str | None = None,
    ) -> None:
        """
        Set a new password using a reset code or link token.

        The password policy is checked before the code is consumed, so a
        rejected password leaves the code usable.

        Raises:
            ServiceError(VALIDATION): Weak password, missing identifier/code
            ServiceError(UNAUTHORIZED): Invalid code or link token
        """
        violation = password_policy_violation(new_password)
        if violation:
            raise ServiceError.validation(violation, field="new_password")

        user = self._consume_code(db, TokenPurpose.PASSWORD_RESET, identifier, code, token)

        self._users.update_password(db, user, self._hasher.hash(new_password))
        logger.info(f"Password reset for user {user.id}")

    # =========================================================================
    # ACCOUNT VERIFICATION
    # =========================================================================

    def verify_account(
        self,
        db: Session,
        identifier: str | None = None,
        code: str | None = None,
        token: str | None = None,
    ) -> User:
        """
        Mark an account verified using its verification code or link token.

        Raises:
            ServiceError(VALIDATION): Missing identifier/code
            ServiceError(UNAUTHORIZED): Invalid code or link token
        """
        user = self._consume_code(db, TokenPurpose.EMAIL_VERIFY, identifier, code, token)
        self._users.mark_verified(db, user)
        return user

    def resend_verification(self, db: Session, identifier: str) -> None:
        """
        Send a fresh verification code to an unverified account.

        Returns normally whether or not the identifier exists, and for
        accounts that are already verified.
        """
        user = self._users.find_by_identifier(db, identifier)
        if user is None or user.is_verified:
            logger.info("Verification resend skipped (unknown or verified account)")
            return

        self._issue_and_deliver(db, user, TokenPurpose.EMAIL_VERIFY)

    # =========================================================================
    # SIGN-OUT
    # =========================================================================

    def sign_out(self, db: Session, claims: TokenClaims) -> None:
        """
        Revoke the access token described by ``claims``.

        The token has already been validated by the auth middleware. It
        stays on the denylist until its own expiry.
        """
        self._denylist.revoke(db, jti=claims.jti, user_id=claims.subject, expires_at=claims.expires_at)
        logger.info(f"User signed out: {claims.subject}")

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    def _issue_access_token(self, user: User) -> AccessToken:
        issued = self._codec.issue(user.id, TokenPurpose.ACCESS, self._ttls[TokenPurpose.ACCESS])
        return AccessToken(
            access_token=issued.token,
            expires_in=issued.expires_in,
            expires_at=issued.expires_at,
        )

    def _issue_and_deliver(self, db: Session, user: User, purpose: TokenPurpose, commit: bool = True) -> None:
        ttl = self._ttls[purpose]
        code = self._codes.issue(db, user.id, purpose, ttl, commit=commit)

        link = None
        if purpose in _LINK_PATHS:
            link_token = self._codec.issue(user.id, purpose, ttl, extra_claims={"code": code})
            query = urlencode({"token": link_token.token})
            link = f"{self._settings.frontend_url.rstrip('/')}{_LINK_PATHS[purpose]}?{query}"

        message = compose_message(
            app_name=self._settings.app_name,
            purpose=purpose,
            code=code,
            ttl_seconds=int(ttl.total_seconds()),
            link=link,
        )
        recipient = Recipient(
            user_id=user.id,
            username=user.username,
            email=user.email,
            telephone=user.profile.telephone if user.profile else None,
        )

        try:
            self._delivery.send(recipient, message)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Delivery of {purpose.value} code failed for user {user.id}: {e}", exc_info=True)
            raise ServiceError.internal("code_delivery") from e

    def _consume_code(
        self,
        db: Session,
        purpose: TokenPurpose,
        identifier: str | None,
        code: str | None,
        token: str | None,
    ) -> User:
        """Resolve the target user and consume their code for ``purpose``."""
        if token:
            claims = self._codec.verify(token, purpose)
            code = claims.extra.get("code")
            if not isinstance(code, str):
                logger.warning(f"{purpose.value} link token without a code")
                raise ServiceError.invalid_code(purpose.value)
            user = self._users.find_by_id(db, claims.subject)
        elif identifier and code:
            user = self._users.find_by_identifier(db, identifier)
        else:
            raise ServiceError.validation("Provide either a token or an identifier and code", field="token")

        if user is None:
            logger.warning(f"{purpose.value} code presented for unknown user")
            raise ServiceError.invalid_code(purpose.value)

        if not self._codes.consume(db, user.id, purpose, code):
            raise ServiceError.invalid_code(purpose.value)

        return user
