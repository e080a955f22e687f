# authcore/routers/users.py
"""
Authenticated per-user endpoints.

Provides:
- GET /dashboard - Role slugs and account counts
- GET /profile - Caller's identity, profile fields and role slugs
- PATCH /profile - Partial update of allow-listed fields
- GET /account - Caller's identity with role details
- GET /settings - Caller's UI settings (defaults if never saved)

All endpoints require a valid, unrevoked access token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from authcore.database import get_db
from authcore.dependencies import CurrentSubject, get_profile_store, get_user_store
from authcore.schemas.envelope import ApiResponse, ok
from authcore.schemas.user_profile import (
    AccountData,
    DashboardData,
    ProfileData,
    ProfileUpdate,
    SettingsData,
)
from authcore.services.profile_store import ProfileStore
from authcore.services.user_store import UserStore

router = APIRouter(tags=["Users"])

Profiles = Annotated[ProfileStore, Depends(get_profile_store)]
Db = Annotated[Session, Depends(get_db)]


@router.get("/dashboard", response_model=ApiResponse[DashboardData], summary="Dashboard statistics")
def dashboard(subject: CurrentSubject, db: Db, profiles: Profiles) -> ApiResponse:
    stats = profiles.dashboard(db)
    return ok("Dashboard statistics retrieved successfully", DashboardData.model_validate(stats))


@router.get("/profile", response_model=ApiResponse[ProfileData], summary="Get the caller's profile")
def get_profile(subject: CurrentSubject, db: Db, profiles: Profiles) -> ApiResponse:
    view = profiles.profile(db, subject.user_id)
    return ok("User profile retrieved successfully", ProfileData.model_validate(view))


@router.patch("/profile", response_model=ApiResponse[ProfileData], summary="Update the caller's profile")
def update_profile(
    data: ProfileUpdate,
    subject: CurrentSubject,
    db: Db,
    profiles: Profiles,
    users: Annotated[UserStore, Depends(get_user_store)],
) -> ApiResponse:
    users.update_profile(db, subject.user_id, data.changes())
    view = profiles.profile(db, subject.user_id)
    return ok("User profile updated successfully", ProfileData.model_validate(view))


@router.get("/account", response_model=ApiResponse[AccountData], summary="Get the caller's account")
def get_account(subject: CurrentSubject, db: Db, profiles: Profiles) -> ApiResponse:
    view = profiles.account(db, subject.user_id)
    return ok("Account retrieved successfully", AccountData.model_validate(view))


@router.get("/settings", response_model=ApiResponse[SettingsData], summary="Get the caller's UI settings")
def get_settings(subject: CurrentSubject, db: Db, profiles: Profiles) -> ApiResponse:
    view = profiles.settings(db, subject.user_id)
    return ok("User settings retrieved successfully", SettingsData.model_validate(view))
