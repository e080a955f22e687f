# authcore/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- auth: credential flow requests and token/account payloads
- user_profile: dashboard, profile, account and settings payloads
- envelope: the {status, message, data} response wrapper
- validators: reusable field validators

Usage:
    from authcore.schemas import SignUpRequest, ApiResponse
"""

from authcore.schemas.auth import (
    AccessTokenData,
    CodeOrTokenRequest,
    IdentifierRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpData,
    SignUpRequest,
    VerifyAccountRequest,
    VerifyOtpRequest,
)
from authcore.schemas.envelope import ApiResponse, error_body, ok
from authcore.schemas.user_profile import (
    AccountData,
    DashboardData,
    ProfileData,
    ProfileUpdate,
    RoleData,
    SettingsData,
)

__all__ = [
    # Envelope
    "ApiResponse",
    "ok",
    "error_body",
    # Auth
    "SignUpRequest",
    "SignUpData",
    "SignInRequest",
    "IdentifierRequest",
    "VerifyOtpRequest",
    "CodeOrTokenRequest",
    "VerifyAccountRequest",
    "ResetPasswordRequest",
    "AccessTokenData",
    # Profile
    "DashboardData",
    "ProfileData",
    "ProfileUpdate",
    "RoleData",
    "AccountData",
    "SettingsData",
]
