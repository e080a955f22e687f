"""
One-time code issuance and single-use consumption.

Handles:
- OTP challenge codes (6 decimal digits, short lifetime)
- Password reset and email verification codes (URL-safe, 256 bits)

Storage rules:
- Only the SHA-256 of a code is persisted, never the code itself
- At most one live (unconsumed, unexpired) code per (user_id, purpose):
  issuing a new code marks the previous one consumed in the same transaction
- Consumption is a conditional UPDATE; when two requests race for the same
  code exactly one of them sees rowcount == 1
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.models import OneTimeCode
from authcore.services.auth.tokens import TokenPurpose
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_OTP_LENGTH = 6


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OneTimeCodeStore:
    """
    Database-backed store of hashed one-time codes.

    Every method takes the caller's Session and commits its own unit of
    work, so a code is durable (or consumed) once the method returns.
    ``issue(commit=False)`` is the exception: sign-up folds the code into
    the transaction that creates the account.
    """

    def __init__(self, otp_length: int = DEFAULT_OTP_LENGTH) -> None:
        self._otp_length = otp_length

    def generate(self, purpose: TokenPurpose) -> str:
        """Produce a fresh plaintext code for ``purpose``."""
        if purpose is TokenPurpose.OTP_CHALLENGE:
            return "".join(secrets.choice("0123456789") for _ in range(self._otp_length))
        return secrets.token_urlsafe(32)

    def issue(
        self,
        db: Session,
        user_id: str,
        purpose: TokenPurpose,
        ttl: timedelta,
        commit: bool = True,
    ) -> str:
        """
        Create a new code for (user_id, purpose), invalidating any live one.

        Args:
            db: Database session
            user_id: Owner of the code
            purpose: What the code may be used for
            ttl: Lifetime of the code
            commit: Commit immediately; pass False to only flush and leave
                the caller's transaction open

        Returns:
            The plaintext code, to be delivered to the user. It is not
            recoverable afterwards.

        Raises:
            ServiceError(INTERNAL): On database failure
        """
        code = self.generate(purpose)
        now = datetime.now(timezone.utc)

        try:
            db.execute(
                update(OneTimeCode)
                .where(
                    OneTimeCode.user_id == user_id,
                    OneTimeCode.purpose == purpose.value,
                    OneTimeCode.consumed_at.is_(None),
                )
                .values(consumed_at=now)
            )
            db.add(OneTimeCode(
                user_id=user_id,
                purpose=purpose.value,
                code_hash=_hash_code(code),
                expires_at=now + ttl,
                created_at=now,
            ))
            if commit:
                db.commit()
            else:
                db.flush()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to issue {purpose.value} code for user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("code_issue", purpose=purpose.value)

        logger.info(f"Issued {purpose.value} code for user {user_id}")
        return code

    def consume(self, db: Session, user_id: str, purpose: TokenPurpose, supplied_code: str) -> bool:
        """
        Consume the live code for (user_id, purpose) if it matches.

        Wrong, expired and already-consumed codes all return False; callers
        map that to one client-facing error.

        Returns:
            True only for the single caller that consumed the code

        Raises:
            ServiceError(INTERNAL): On database failure
        """
        if not supplied_code:
            return False

        now = datetime.now(timezone.utc)
        try:
            live = db.scalars(
                select(OneTimeCode)
                .where(
                    OneTimeCode.user_id == user_id,
                    OneTimeCode.purpose == purpose.value,
                    OneTimeCode.consumed_at.is_(None),
                    OneTimeCode.expires_at > now,
                )
                .order_by(OneTimeCode.created_at.desc())
                .limit(1)
            ).first()

            if live is None:
                logger.warning(f"No live {purpose.value} code for user {user_id}")
                return False

            if not hmac.compare_digest(live.code_hash, _hash_code(supplied_code)):
                logger.warning(f"Mismatched {purpose.value} code for user {user_id}")
                return False

            result = db.execute(
                update(OneTimeCode)
                .where(
                    OneTimeCode.id == live.id,
                    OneTimeCode.consumed_at.is_(None),
                    OneTimeCode.expires_at > now,
                )
                .values(consumed_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to consume {purpose.value} code for user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("code_consume", purpose=purpose.value)

        if result.rowcount != 1:
            logger.warning(f"Lost race consuming {purpose.value} code for user {user_id}")
            return False

        logger.info(f"Consumed {purpose.value} code for user {user_id}")
        return True

    def purge_expired(self, db: Session) -> int:
        """
        Delete consumed and expired codes.

        Returns:
            Number of rows removed
        """
        now = datetime.now(timezone.utc)
        try:
            result = db.execute(
                delete(OneTimeCode)
                .where(or_(OneTimeCode.consumed_at.is_not(None), OneTimeCode.expires_at <= now))
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to purge one-time codes: {e}", exc_info=True)
            raise ServiceError.internal("code_purge")

        if result.rowcount:
            logger.info(f"Purged {result.rowcount} one-time codes")
        return result.rowcount
