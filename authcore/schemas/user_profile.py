# authcore/schemas/user_profile.py
"""
Authenticated per-user read/update schemas.

Defines Pydantic models for:
- Dashboard statistics
- Profile view and partial update
- Account view with role details
- UI settings
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from authcore.schemas.validators import validate_birth_date, validate_username


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class DashboardData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    roles: list[str] = Field(..., description="All role slugs")
    users: int = Field(..., description="Total number of accounts")
    verified_users: int = Field(..., description="Accounts that completed verification")


class ProfileData(BaseModel):
    """User identity plus profile fields and role slugs."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str | None = None
    is_verified: bool
    roles: list[str] = Field(default_factory=list)
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


class RoleData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slug: str
    name: str
    description: str | None = None


class AccountData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str | None = None
    is_verified: bool
    roles: list[RoleData] = Field(default_factory=list)


class SettingsData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theme: str
    language: str
    notifications: bool


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class ProfileUpdate(BaseModel):
    """
    Request body for PATCH /profile.

    Only fields present in the body are changed. Unknown fields are
    rejected.
    """

    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(None, examples=["alice2"])
    email: EmailStr | None = None
    telephone: str | None = Field(None, max_length=32)
    salutation: str | None = Field(None, max_length=32)
    first_name: str | None = Field(None, max_length=100)
    middle_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    gender: str | None = Field(None, max_length=32)
    address_line_1: str | None = Field(None, max_length=255)
    address_line_2: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    date_of_birth: date | None = Field(None, examples=["1990-04-01"])
    configuration: dict[str, Any] | None = None

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str | None) -> str | None:
        return validate_username(v) if v is not None else v

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def check_date_of_birth(cls, v: object) -> date | None:
        return validate_birth_date(v) if v is not None else v

    def changes(self) -> list[tuple[str, Any]]:
        """(field, value) pairs for the fields the client actually sent."""
        return list(self.model_dump(exclude_unset=True).items())
