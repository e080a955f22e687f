"""
Revoked access tokens.

Access tokens are stateless; sign-out records the token's ``jti`` here until
the token's own expiry. After that the expiry check rejects the token anyway
and the row is only kept until the next purge.
"""

import enum
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.models import RevokedToken
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


class TokenState(str, enum.Enum):
    LIVE = "live"
    REVOKED = "revoked"


class TokenDenylist:
    """Database-backed denylist keyed by token id."""

    def revoke(self, db: Session, jti: str, user_id: str, expires_at: datetime) -> None:
        """
        Record ``jti`` as revoked until ``expires_at``.

        Revoking an already revoked token is a no-op.

        Raises:
            ServiceError(INTERNAL): On database failure
        """
        try:
            db.add(RevokedToken(
                jti=jti,
                user_id=user_id,
                expires_at=expires_at,
                revoked_at=datetime.now(timezone.utc),
            ))
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Token {jti} already revoked")
            return
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to revoke token {jti}: {e}", exc_info=True)
            raise ServiceError.internal("token_revoke")

        logger.info(f"Revoked token {jti} for user {user_id}")

    def state(self, db: Session, jti: str) -> TokenState:
        """
        Look up whether ``jti`` has been revoked.

        Raises:
            ServiceError(INTERNAL): On database failure
        """
        try:
            found = db.scalar(select(RevokedToken.jti).where(RevokedToken.jti == jti))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Denylist lookup failed: {e}", exc_info=True)
            raise ServiceError.internal("token_state")

        return TokenState.REVOKED if found is not None else TokenState.LIVE

    def purge_expired(self, db: Session) -> int:
        """Delete entries whose token has expired. Returns rows removed."""
        now = datetime.now(timezone.utc)
        try:
            result = db.execute(
                delete(RevokedToken)
                .where(RevokedToken.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to purge denylist: {e}", exc_info=True)
            raise ServiceError.internal("denylist_purge")

        return result.rowcount
