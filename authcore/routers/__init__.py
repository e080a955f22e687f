# authcore/routers/__init__.py
"""
API routers.

- auth: credential lifecycle (sign-up, sign-in, OTP, reset, verify, sign-out)
- users: authenticated per-user reads and profile update
"""

from authcore.routers.auth import router as auth_router
from authcore.routers.users import router as users_router

__all__ = [
    "auth_router",
    "users_router",
]
