# authcore/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise ServiceError tagged with an ErrorKind
- Receive database sessions as parameters (not via Depends)
- Are built once by create_app() and shared across requests

Architecture:
    services/
    ├── __init__.py          # This file - main exports
    ├── exceptions.py        # ServiceError, ErrorKind, TokenFailure
    ├── user_store.py        # Users, profiles, role assignments
    ├── profile_store.py     # Read models for the per-user endpoints
    └── auth/                # Credential lifecycle
        ├── password.py      # Argon2id hashing + password policy
        ├── tokens.py        # Signed, purpose-tagged bearer tokens
        ├── codes.py         # Hashed single-use codes
        ├── denylist.py      # Revoked access tokens
        ├── delivery.py      # SMTP / in-memory code delivery
        └── service.py       # CredentialService flows
"""

from authcore.services.exceptions import ErrorKind, ServiceError, TokenFailure
from authcore.services.profile_store import ProfileStore
from authcore.services.user_store import UserStore

__all__ = [
    "ErrorKind",
    "ServiceError",
    "TokenFailure",
    "ProfileStore",
    "UserStore",
]
