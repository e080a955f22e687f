# authcore/routers/auth.py
"""
Credential lifecycle endpoints.

Provides:
- POST /sign-up - Create an unverified account, send verification code
- POST /sign-in - Username/password sign-in
- POST /request-otp - Send a sign-in code
- POST /verify-otp - Exchange a sign-in code for an access token
- POST /forgot-password - Send a password reset code and link
- POST /reset-password - Set a new password with a code or link token
- POST /verify-account - Verify an account with a code or link token
- POST /resend-verification - Send a fresh verification code
- POST /sign-out - Revoke the current access token

The three "send me a code" endpoints answer identically whether or not the
identifier belongs to an account.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from authcore.database import get_db
from authcore.dependencies import CurrentSubject, get_credential_service
from authcore.schemas.auth import (
    AccessTokenData,
    IdentifierRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpData,
    SignUpRequest,
    VerifyAccountRequest,
    VerifyOtpRequest,
)
from authcore.schemas.envelope import ApiResponse, ok
from authcore.services.auth.service import CredentialService

router = APIRouter(tags=["Authentication"])

Service = Annotated[CredentialService, Depends(get_credential_service)]
Db = Annotated[Session, Depends(get_db)]

OTP_SENT_MESSAGE = "If the account exists, a sign-in code has been sent"
RESET_SENT_MESSAGE = "If the account exists, password reset instructions have been sent"
VERIFICATION_SENT_MESSAGE = "If the account exists and is unverified, a verification code has been sent"


# =============================================================================
# SIGN-UP & SIGN-IN
# =============================================================================


@router.post(
    "/sign-up",
    response_model=ApiResponse[SignUpData],
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Create an unverified account. A verification code is delivered by email or telephone.",
)
def sign_up(data: SignUpRequest, db: Db, service: Service) -> ApiResponse:
    user = service.sign_up(
        db=db,
        username=data.username,
        password=data.password,
        email=data.email,
        profile=data.profile_fields(),
    )
    return ok("User created successfully", SignUpData.model_validate(user))


@router.post(
    "/sign-in",
    response_model=ApiResponse[AccessTokenData],
    summary="Sign in with username and password",
)
def sign_in(data: SignInRequest, db: Db, service: Service) -> ApiResponse:
    token = service.sign_in(db=db, username=data.username, password=data.password)
    return ok("Signed in successfully", AccessTokenData.model_validate(token))


# =============================================================================
# ONE-TIME PASSCODES
# =============================================================================


@router.post(
    "/request-otp",
    response_model=ApiResponse[None],
    summary="Request a sign-in code",
)
def request_otp(data: IdentifierRequest, db: Db, service: Service) -> ApiResponse:
    service.request_otp(db=db, identifier=data.identifier)
    return ok(OTP_SENT_MESSAGE)


@router.post(
    "/verify-otp",
    response_model=ApiResponse[AccessTokenData],
    summary="Sign in with a one-time code",
)
def verify_otp(data: VerifyOtpRequest, db: Db, service: Service) -> ApiResponse:
    token = service.verify_otp(db=db, identifier=data.identifier, code=data.code)
    return ok("Signed in successfully", AccessTokenData.model_validate(token))


# =============================================================================
# PASSWORD RESET
# =============================================================================


@router.post(
    "/forgot-password",
    response_model=ApiResponse[None],
    summary="Request a password reset",
)
def forgot_password(data: IdentifierRequest, db: Db, service: Service) -> ApiResponse:
    service.forgot_password(db=db, identifier=data.identifier)
    return ok(RESET_SENT_MESSAGE)


@router.post(
    "/reset-password",
    response_model=ApiResponse[None],
    summary="Reset password with a code or link token",
)
def reset_password(data: ResetPasswordRequest, db: Db, service: Service) -> ApiResponse:
    service.reset_password(
        db=db,
        new_password=data.new_password,
        identifier=data.identifier,
        code=data.code,
        token=data.token,
    )
    return ok("Password has been reset")


# =============================================================================
# ACCOUNT VERIFICATION
# =============================================================================


@router.post(
    "/verify-account",
    response_model=ApiResponse[None],
    summary="Verify an account with a code or link token",
)
def verify_account(data: VerifyAccountRequest, db: Db, service: Service) -> ApiResponse:
    service.verify_account(db=db, identifier=data.identifier, code=data.code, token=data.token)
    return ok("Account verified")


@router.post(
    "/resend-verification",
    response_model=ApiResponse[None],
    summary="Resend the account verification code",
)
def resend_verification(data: IdentifierRequest, db: Db, service: Service) -> ApiResponse:
    service.resend_verification(db=db, identifier=data.identifier)
    return ok(VERIFICATION_SENT_MESSAGE)


# =============================================================================
# SIGN-OUT
# =============================================================================


@router.post(
    "/sign-out",
    response_model=ApiResponse[None],
    summary="Revoke the current access token",
)
def sign_out(subject: CurrentSubject, db: Db, service: Service) -> ApiResponse:
    service.sign_out(db=db, claims=subject.claims)
    return ok("Signed out successfully")
