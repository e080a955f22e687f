# authcore/middleware/__init__.py
"""
Request middleware.

- CorrelationIdMiddleware: ASGI middleware, one correlation id per request
- AuthMiddleware: bearer token validation, used through the
  ``get_current_subject`` dependency on protected routes

Usage:
    from authcore.middleware import CorrelationIdMiddleware

    app.add_middleware(CorrelationIdMiddleware)
"""

from authcore.middleware.auth import AuthMiddleware, AuthenticatedSubject
from authcore.middleware.correlation import CorrelationIdMiddleware

__all__ = [
    "AuthMiddleware",
    "AuthenticatedSubject",
    "CorrelationIdMiddleware",
]
