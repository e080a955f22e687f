"""
Credential services.

This module provides:
- Password hashing and verification (Argon2id)
- Purpose-tagged token signing and validation
- Single-use one-time codes
- Access token denylist (sign-out)
- Code delivery channels (SMTP, in-memory outbox)
- Core credential flows (CredentialService)

Usage:
    from authcore.services.auth import PasswordHasher, TokenCodec, TokenPurpose

    hasher = PasswordHasher.from_settings(settings)
    hashed = hasher.hash("CorrectHorse9")
    hasher.verify("CorrectHorse9", hashed)

    codec = TokenCodec.from_settings(settings)
    issued = codec.issue(user.id, TokenPurpose.ACCESS, timedelta(hours=1))
    claims = codec.verify(issued.token, TokenPurpose.ACCESS)
"""

from authcore.services.auth.password import PasswordHasher, password_policy_violation
from authcore.services.auth.tokens import IssuedToken, TokenClaims, TokenCodec, TokenPurpose
from authcore.services.auth.codes import OneTimeCodeStore
from authcore.services.auth.denylist import TokenDenylist, TokenState
from authcore.services.auth.delivery import (
    CodeDeliveryChannel,
    DeliveryMessage,
    InMemoryDeliveryChannel,
    Recipient,
    SmtpDeliveryChannel,
    create_delivery_channel,
)
from authcore.services.auth.service import AccessToken, CredentialService

__all__ = [
    "PasswordHasher",
    "password_policy_violation",
    "IssuedToken",
    "TokenClaims",
    "TokenCodec",
    "TokenPurpose",
    "OneTimeCodeStore",
    "TokenDenylist",
    "TokenState",
    "CodeDeliveryChannel",
    "DeliveryMessage",
    "InMemoryDeliveryChannel",
    "Recipient",
    "SmtpDeliveryChannel",
    "create_delivery_channel",
    "AccessToken",
    "CredentialService",
]
