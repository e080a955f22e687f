"""
User persistence.

Handles:
- Account creation (user + profile + default role in one transaction)
- Lookups by id, username, email, or either identifier
- Password and verification state changes
- Allow-listed partial profile updates
- Default role seeding

Uniqueness of username and email is enforced by database constraints; the
application-level pre-check only gives a friendlier message in the common
case. Two concurrent sign-ups for the same name end with one success and one
CONFLICT.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from authcore.models import Profile, Role, User, UserRole
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


# Columns a user may change on their own profile. Anything else in an update
# request is rejected before it reaches the ORM.
UPDATABLE_USER_FIELDS = frozenset({"username", "email"})
UPDATABLE_PROFILE_FIELDS = frozenset({
    "telephone",
    "salutation",
    "first_name",
    "middle_name",
    "last_name",
    "gender",
    "address_line_1",
    "address_line_2",
    "city",
    "state",
    "country",
    "date_of_birth",
    "configuration",
})
UPDATABLE_FIELDS = UPDATABLE_USER_FIELDS | UPDATABLE_PROFILE_FIELDS

DEFAULT_ROLES: tuple[tuple[str, str, str], ...] = (
    ("admin", "Administrator", "Full access to every account"),
    ("user", "User", "Standard account"),
)


def normalize_email(email: str | None) -> str | None:
    """Lowercased form in which emails are stored and compared."""
    if email is None:
        return None
    return email.strip().lower() or None


class UserStore:
    """Reads and writes users, profiles and role assignments."""

    # =========================================================================
    # CREATION
    # =========================================================================

    def create(
        self,
        db: Session,
        username: str,
        email: str | None,
        hashed_password: str,
        profile: dict[str, Any],
        role_slug: str,
        commit: bool = True,
    ) -> User:
        """
        Create an unverified user with its profile and default role.

        Args:
            db: Database session
            username: Unique login name
            email: Unique email address (optional, stored lowercased)
            hashed_password: Encoded Argon2 hash
            profile: Profile column values (keys outside the profile
                allow-list are ignored)
            role_slug: Role assigned to the new user
            commit: Commit immediately; pass False to only flush, leaving
                the caller to commit or roll back the whole sign-up

        Returns:
            The created User

        Raises:
            ServiceError(CONFLICT): If username or email is already taken
            ServiceError(INTERNAL): If the role is missing or the write fails
        """
        email = normalize_email(email)
        if self.find_by_username(db, username) is not None:
            raise ServiceError.conflict("Username already taken", field="username")
        if email and self.find_by_email(db, email) is not None:
            raise ServiceError.conflict("Email already registered", field="email")

        try:
            if db.scalar(select(Role.id).where(Role.slug == role_slug)) is None:
                logger.error(f"Default role '{role_slug}' does not exist")
                raise ServiceError.internal("user_create", cause="missing_role")

            user = User(username=username, email=email, hashed_password=hashed_password, is_verified=False)
            db.add(user)
            db.flush()

            db.add(Profile(
                user_id=user.id,
                **{k: v for k, v in profile.items() if k in UPDATABLE_PROFILE_FIELDS},
            ))
            db.add(UserRole(user_id=user.id, role_slug=role_slug))
            if commit:
                db.commit()
            else:
                db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Sign-up lost uniqueness race for username '{username}'")
            raise ServiceError.conflict("Username or email already taken")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create user '{username}': {e}", exc_info=True)
            raise ServiceError.internal("user_create")

        logger.info(f"Created user {user.id} ({username})")
        return user

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def find_by_id(self, db: Session, user_id: str) -> User | None:
        return self._scalar(db, select(User).where(User.id == user_id))

    def find_by_username(self, db: Session, username: str) -> User | None:
        return self._scalar(db, select(User).where(User.username == username))

    def find_by_email(self, db: Session, email: str) -> User | None:
        return self._scalar(db, select(User).where(User.email == normalize_email(email)))

    def find_by_identifier(self, db: Session, identifier: str) -> User | None:
        """Find a user whose username or email equals ``identifier``."""
        identifier = identifier.strip()
        if not identifier:
            return None
        return self._scalar(
            db,
            select(User)
            .where(or_(User.username == identifier, User.email == normalize_email(identifier)))
            .order_by((User.username == identifier).desc())
            .limit(1),
        )

    def role_slugs(self, db: Session, user_id: str) -> list[str]:
        try:
            return list(db.scalars(
                select(UserRole.role_slug).where(UserRole.user_id == user_id).order_by(UserRole.role_slug)
            ))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to load roles for user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("user_roles")

    def load_with_details(self, db: Session, user_id: str) -> User | None:
        """Load a user with profile, settings and roles eagerly."""
        return self._scalar(
            db,
            select(User)
            .options(selectinload(User.profile), selectinload(User.settings), selectinload(User.roles))
            .where(User.id == user_id),
        )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def update_password(self, db: Session, user: User, hashed_password: str) -> None:
        user.hashed_password = hashed_password
        user.password_changed_at = datetime.now(timezone.utc)
        self._commit(db, "user_update_password")
        logger.info(f"Password updated for user {user.id}")

    def rehash_password(self, db: Session, user: User, hashed_password: str) -> None:
        """Store an upgraded hash of the same password."""
        user.hashed_password = hashed_password
        self._commit(db, "user_rehash_password")
        logger.info(f"Password hash upgraded for user {user.id}")

    def mark_verified(self, db: Session, user: User) -> None:
        if user.is_verified:
            return
        user.is_verified = True
        user.verified_at = datetime.now(timezone.utc)
        self._commit(db, "user_mark_verified")
        logger.info(f"User {user.id} verified")

    def update_profile(self, db: Session, user_id: str, changes: Iterable[tuple[str, Any]]) -> User:
        """
        Apply a partial update to a user and its profile.

        Args:
            db: Database session
            user_id: The user to update
            changes: (field, value) pairs; every field must be in
                UPDATABLE_FIELDS

        Returns:
            The updated User

        Raises:
            ServiceError(VALIDATION): Unknown field or invalid value
            ServiceError(NOT_FOUND): User or profile missing
            ServiceError(CONFLICT): New username/email already taken
        """
        changes = list(changes)
        unknown = [name for name, _ in changes if name not in UPDATABLE_FIELDS]
        if unknown:
            raise ServiceError.validation(f"Field cannot be updated: {unknown[0]}", field=unknown[0])

        user = self.load_with_details(db, user_id)
        if user is None or user.profile is None:
            raise ServiceError.not_found("Profile not found", resource_type="profile")

        for name, value in changes:
            if name in ("username", "date_of_birth") and value is None:
                raise ServiceError.validation(f"{name} cannot be empty", field=name)
            if name == "date_of_birth" and not isinstance(value, date):
                raise ServiceError.validation("date_of_birth must be YYYY-MM-DD", field=name)

        changes = [(name, normalize_email(value) if name == "email" else value) for name, value in changes]
        for name, value in changes:
            if name == "email" and value:
                owner = self.find_by_email(db, value)
                if owner is not None and owner.id != user.id:
                    raise ServiceError.conflict("Email already registered", field="email")

        for name, value in changes:
            target = user if name in UPDATABLE_USER_FIELDS else user.profile
            setattr(target, name, value)

        if not changes:
            return user

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ServiceError.conflict("Username or email already taken")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update profile for user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("profile_update")

        logger.info(f"Updated {', '.join(name for name, _ in changes)} for user {user_id}")
        return user

    # =========================================================================
    # ROLES
    # =========================================================================

    def ensure_default_roles(
        self,
        db: Session,
        roles: Iterable[tuple[str, str, str]] = DEFAULT_ROLES,
    ) -> int:
        """
        Insert any missing default roles.

        Returns:
            Number of roles created
        """
        existing = set(db.scalars(select(Role.slug)))
        created = 0
        for slug, name, description in roles:
            if slug in existing:
                continue
            db.add(Role(slug=slug, name=name, description=description))
            created += 1

        if created:
            self._commit(db, "roles_seed")
            logger.info(f"Seeded {created} default roles")
        return created

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _scalar(self, db: Session, stmt) -> Any:
        try:
            return db.scalars(stmt).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"User lookup failed: {e}", exc_info=True)
            raise ServiceError.internal("user_lookup")

    def _commit(self, db: Session, operation: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"{operation} failed: {e}", exc_info=True)
            raise ServiceError.internal(operation)
