# authcore/schemas/auth.py
"""
Credential flow request/response schemas.

Defines Pydantic models for:
- Sign-up and sign-in
- OTP request and verification
- Forgot / reset password
- Account verification and resending the verification code
- Access token and created-account payloads
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from authcore.schemas.validators import validate_birth_date, validate_password, validate_username

# Upper bound on any password-like input, so hashing work stays bounded
MAX_SECRET_INPUT_LENGTH = 1024


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class SignUpRequest(BaseModel):
    """Request body for account creation."""

    username: str = Field(
        ...,
        description="Unique login name",
        examples=["alice"],
    )
    email: EmailStr | None = Field(
        None,
        description="Email address (email or telephone is required)",
        examples=["alice@example.com"],
    )
    password: str = Field(
        ...,
        description="Password (8-128 characters, at least one letter and one digit)",
        examples=["CorrectHorse9"],
    )
    telephone: str | None = Field(None, max_length=32, examples=["+15551234567"])
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
    date_of_birth: date = Field(
        ...,
        description="Date of birth, YYYY-MM-DD",
        examples=["1990-04-01"],
    )
    configuration: dict[str, Any] | None = Field(
        None,
        description="Free-form client configuration",
    )

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return validate_username(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password(v)

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def check_date_of_birth(cls, v: object) -> date:
        return validate_birth_date(v)

    @model_validator(mode="after")
    def require_delivery_address(self) -> "SignUpRequest":
        if not self.email and not self.telephone:
            raise ValueError("Either email or telephone is required")
        return self

    def profile_fields(self) -> dict[str, Any]:
        """Everything except the user-level credentials."""
        return self.model_dump(exclude={"username", "email", "password"})


class SignInRequest(BaseModel):
    """Request body for username/password sign-in."""

    username: str = Field(..., min_length=1, max_length=64, examples=["alice"])
    password: str = Field(..., min_length=1, max_length=MAX_SECRET_INPUT_LENGTH)


class IdentifierRequest(BaseModel):
    """Request body for /request-otp, /forgot-password and /resend-verification."""

    identifier: str = Field(
        ...,
        min_length=1,
        max_length=320,
        description="Username or email address",
        examples=["alice"],
    )


class VerifyOtpRequest(BaseModel):
    """Request body for OTP sign-in."""

    identifier: str = Field(..., min_length=1, max_length=320, examples=["alice"])
    code: str = Field(..., min_length=1, max_length=64, examples=["493027"])


class CodeOrTokenRequest(BaseModel):
    """
    A one-time code addressed either by identifier + code, or by the
    link token delivered alongside the code.
    """

    identifier: str | None = Field(None, max_length=320)
    code: str | None = Field(None, max_length=128)
    token: str | None = Field(None, max_length=4096)

    @model_validator(mode="after")
    def require_code_or_token(self) -> "CodeOrTokenRequest":
        if not self.token and not (self.identifier and self.code):
            raise ValueError("Provide either a token or an identifier and code")
        return self


class VerifyAccountRequest(CodeOrTokenRequest):
    """Request body for account verification."""


class ResetPasswordRequest(CodeOrTokenRequest):
    """Request body for password reset."""

    new_password: str = Field(
        ...,
        max_length=MAX_SECRET_INPUT_LENGTH,
        description="New password (8-128 characters, at least one letter and one digit)",
    )

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return validate_password(v)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class AccessTokenData(BaseModel):
    """Bearer credential."""

    model_config = ConfigDict(from_attributes=True)

    access_token: str = Field(..., description="Signed access token")
    token_type: str = Field(default="bearer", description="Always 'bearer'")
    expires_in: int = Field(..., description="Lifetime in seconds")


class SignUpData(BaseModel):
    """The created (unverified) account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str | None = None
    is_verified: bool
