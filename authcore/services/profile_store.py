"""
Read models for the authenticated per-user endpoints.

Handles:
- Dashboard statistics (role slugs, user counts)
- Profile view (user + profile + role slugs)
- Account view (user with role details)
- UI settings (defaults when the user has no settings row)

Every method is a pure read: nothing here writes to the database, and a
missing settings row is reported as the defaults rather than created.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from authcore.models import Role, User, UserSettings
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_THEME = "system"
DEFAULT_LANGUAGE = "en"
DEFAULT_NOTIFICATIONS = True


@dataclass
class DashboardStats:
    roles: list[str]
    users: int
    verified_users: int


@dataclass
class ProfileView:
    id: str
    username: str
    email: str | None
    is_verified: bool
    roles: list[str]
    date_of_birth: date | None = None
    telephone: str | None = None
    salutation: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    address_line_1: str | None = None
    address_line_2: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    configuration: dict[str, Any] | None = None


@dataclass
class RoleDetails:
    slug: str
    name: str
    description: str | None


@dataclass
class AccountView:
    id: str
    username: str
    email: str | None
    is_verified: bool
    roles: list[RoleDetails] = field(default_factory=list)


@dataclass
class SettingsView:
    theme: str = DEFAULT_THEME
    language: str = DEFAULT_LANGUAGE
    notifications: bool = DEFAULT_NOTIFICATIONS


_PROFILE_COLUMNS = (
    "date_of_birth",
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
    "configuration",
)


class ProfileStore:
    """Read-only queries behind the dashboard, profile, account and settings endpoints."""

    def dashboard(self, db: Session) -> DashboardStats:
        try:
            roles = list(db.scalars(select(Role.slug).distinct().order_by(Role.slug)))
            users = db.scalar(select(func.count()).select_from(User)) or 0
            verified = db.scalar(
                select(func.count()).select_from(User).where(User.is_verified.is_(True))
            ) or 0
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to compute dashboard stats: {e}", exc_info=True)
            raise ServiceError.internal("dashboard")

        return DashboardStats(roles=roles, users=users, verified_users=verified)

    def profile(self, db: Session, user_id: str) -> ProfileView:
        """
        Load the caller's profile.

        Raises:
            ServiceError(NOT_FOUND): The token subject no longer exists
        """
        user = self._load(db, user_id, with_profile=True)
        view = ProfileView(
            id=user.id,
            username=user.username,
            email=user.email,
            is_verified=user.is_verified,
            roles=[role.slug for role in user.roles],
        )
        if user.profile is not None:
            for column in _PROFILE_COLUMNS:
                setattr(view, column, getattr(user.profile, column))
        return view

    def account(self, db: Session, user_id: str) -> AccountView:
        user = self._load(db, user_id)
        return AccountView(
            id=user.id,
            username=user.username,
            email=user.email,
            is_verified=user.is_verified,
            roles=[RoleDetails(slug=r.slug, name=r.name, description=r.description) for r in user.roles],
        )

    def settings(self, db: Session, user_id: str) -> SettingsView:
        try:
            row = db.scalars(select(UserSettings).where(UserSettings.user_id == user_id)).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to load settings for user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("settings")

        if row is None:
            return SettingsView()
        return SettingsView(theme=row.theme, language=row.language, notifications=row.notifications)

    def _load(self, db: Session, user_id: str, with_profile: bool = False) -> User:
        options = [selectinload(User.roles)]
        if with_profile:
            options.append(selectinload(User.profile))
        try:
            user = db.scalars(select(User).options(*options).where(User.id == user_id)).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to load user {user_id}: {e}", exc_info=True)
            raise ServiceError.internal("user_lookup")

        if user is None:
            raise ServiceError.not_found("User not found", resource_type="user")
        return user
