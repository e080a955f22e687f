# authcore/services/exceptions.py
"""
Service layer errors.

Every failure raised by the service layer is a single tagged type,
``ServiceError``, carrying an ``ErrorKind`` plus free-form context. These
errors contain NO HTTP knowledge; the application maps kind -> status code
in one place (see ``authcore.main``).

Error kinds:
    VALIDATION    malformed or missing input, weak password
    CONFLICT      username or email already taken
    UNAUTHORIZED  bad credentials, invalid/expired/revoked token, bad code
    NOT_FOUND     resource missing where enumeration is not a concern
    INTERNAL      storage, hashing, signing or delivery failure

The message on an UNAUTHORIZED or INTERNAL error is what the client sees,
so it is always generic. Diagnostic detail goes into ``context`` and the
logs, never into the message.
"""

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class TokenFailure(str, enum.Enum):
    """Why a bearer token was rejected. Logged, never shown to clients."""

    MISSING = "missing"
    MALFORMED = "malformed"
    SIGNATURE = "signature"
    EXPIRED = "expired"
    PURPOSE = "purpose"
    REVOKED = "revoked"


# Client-facing messages shared across flows so every failure cause of the
# same family produces byte-identical responses.
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
INVALID_TOKEN_MESSAGE = "Invalid token"
INVALID_CODE_MESSAGE = "Invalid or expired code"
INTERNAL_ERROR_MESSAGE = "An internal error occurred"


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        kind: The error category (drives the HTTP status code)
        message: Client-safe, human-readable description
        context: Diagnostic detail for logs (field name, failure reason...)
    """

    def __init__(self, kind: ErrorKind, message: str, **context: Any) -> None:
        self.kind = kind
        self.message = message
        self.context = context
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ServiceError({self.kind.value!r}, {self.message!r}, {self.context!r})"

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def validation(cls, message: str, field: str | None = None) -> "ServiceError":
        return cls(ErrorKind.VALIDATION, message, field=field)

    @classmethod
    def conflict(cls, message: str, field: str | None = None) -> "ServiceError":
        return cls(ErrorKind.CONFLICT, message, field=field)

    @classmethod
    def unauthorized(cls, message: str = INVALID_CREDENTIALS_MESSAGE, **context: Any) -> "ServiceError":
        return cls(ErrorKind.UNAUTHORIZED, message, **context)

    @classmethod
    def invalid_token(cls, reason: TokenFailure) -> "ServiceError":
        return cls(ErrorKind.UNAUTHORIZED, INVALID_TOKEN_MESSAGE, reason=reason)

    @classmethod
    def invalid_code(cls, purpose: str) -> "ServiceError":
        return cls(ErrorKind.UNAUTHORIZED, INVALID_CODE_MESSAGE, purpose=purpose)

    @classmethod
    def not_found(cls, message: str, resource_type: str | None = None) -> "ServiceError":
        return cls(ErrorKind.NOT_FOUND, message, resource_type=resource_type)

    @classmethod
    def internal(cls, operation: str, **context: Any) -> "ServiceError":
        return cls(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE, operation=operation, **context)

    @property
    def reason(self) -> Any:
        """Shortcut for the ``reason`` context entry (token failures)."""
        return self.context.get("reason")


__all__ = [
    "ErrorKind",
    "TokenFailure",
    "ServiceError",
    "INVALID_CREDENTIALS_MESSAGE",
    "INVALID_TOKEN_MESSAGE",
    "INVALID_CODE_MESSAGE",
    "INTERNAL_ERROR_MESSAGE",
]
