# authcore/dependencies.py
"""
Dependency injection for FastAPI routes.

Service instances are built once per application by ``create_app()`` and
kept on ``app.state``; these dependencies hand them to the routes. Nothing
here is a module-level singleton, so two apps with different settings (for
example in tests) never share state.

Usage in routers:
    from authcore.dependencies import get_credential_service, get_current_subject

    @router.post("/sign-out")
    def sign_out(
        subject: AuthenticatedSubject = Depends(get_current_subject),
        service: CredentialService = Depends(get_credential_service),
    ):
        ...
"""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from authcore.config import Settings
from authcore.database import get_db
from authcore.middleware.auth import AuthenticatedSubject, AuthMiddleware
from authcore.services.auth.service import CredentialService
from authcore.services.profile_store import ProfileStore
from authcore.services.user_store import UserStore
from authcore.utils.context import set_request_context


# =============================================================================
# SERVICES
# =============================================================================


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_profile_store(request: Request) -> ProfileStore:
    return request.app.state.profile_store


def get_auth_middleware(request: Request) -> AuthMiddleware:
    return request.app.state.auth_middleware


# =============================================================================
# AUTHENTICATION
# =============================================================================


async def get_current_subject(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    auth: Annotated[AuthMiddleware, Depends(get_auth_middleware)],
    authorization: Annotated[str | None, Header()] = None,
) -> AuthenticatedSubject:
    """
    Dependency that authenticates the bearer token on protected routes.

    Runs as a coroutine so the user id it places in the logging context is
    visible to the route handler that runs afterwards. The denylist lookup
    itself is blocking and goes to the threadpool.

    Raises:
        ServiceError(UNAUTHORIZED): Missing, malformed, invalid, expired,
            wrong-purpose or revoked token
    """
    subject = await run_in_threadpool(auth.authenticate, db, authorization)
    request.state.subject = subject
    set_request_context("user_id", subject.user_id)
    return subject


CurrentSubject = Annotated[AuthenticatedSubject, Depends(get_current_subject)]
