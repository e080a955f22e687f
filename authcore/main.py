# authcore/main.py
"""
FastAPI application factory.

``create_app()``:
- Builds Settings once (or takes the one it is given)
- Configures application-wide logging
- Builds the engine, session factory and every shared service
- Registers the exception handlers that render the response envelope
- Registers the routers and health endpoints

Run with:
    uvicorn --factory authcore.main:create_app
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from authcore.config import Settings
from authcore.database import check_database_health, create_db_engine, create_session_factory
from authcore.init_db import initialize_database
from authcore.middleware import AuthMiddleware, CorrelationIdMiddleware
from authcore.routers import auth_router, users_router
from authcore.schemas.envelope import error_body
from authcore.services.auth.codes import OneTimeCodeStore
from authcore.services.auth.delivery import CodeDeliveryChannel, create_delivery_channel
from authcore.services.auth.denylist import TokenDenylist
from authcore.services.auth.password import PasswordHasher
from authcore.services.auth.service import CredentialService
from authcore.services.auth.tokens import TokenCodec
from authcore.services.exceptions import INTERNAL_ERROR_MESSAGE, ErrorKind, ServiceError
from authcore.services.profile_store import ProfileStore
from authcore.services.user_store import UserStore
from authcore.utils import setup_logging

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    state = app.state
    if state.settings.auto_create_schema:
        initialize_database(state.engine, state.session_factory, state.user_store)
    logger.info(f"{state.settings.app_name} started ({state.settings.environment})")
    try:
        yield
    finally:
        state.password_hasher.shutdown()
        state.engine.dispose()
        logger.info(f"{state.settings.app_name} stopped")


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render any ServiceError; the kind decides the status code."""
    status_code = STATUS_BY_KIND[exc.kind]
    headers = None
    data = None

    if exc.kind is ErrorKind.INTERNAL:
        logger.error(f"Internal error during {request.method} {request.url.path}: {exc.context}")
    elif exc.kind is ErrorKind.UNAUTHORIZED:
        headers = BEARER_CHALLENGE
    else:
        logger.warning(f"{exc.kind.value} error on {request.url.path}: {exc.message}")
        if exc.context.get("field"):
            data = {"field": exc.context["field"]}

    return JSONResponse(status_code=status_code, content=error_body(exc.message, data), headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic request validation failures become 400 envelopes."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
        })
    message = errors[0]["message"] if errors else "Request validation failed"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, {"errors": errors}),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Framework errors (404 route, 405 method...) in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail) if exc.detail else "An error occurred"),
        headers=exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error during {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(INTERNAL_ERROR_MESSAGE),
    )


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
def health_check(request: Request):
    """
    Health status of the service and its database.

    - 200: database reachable
    - 503: database unreachable, do not route traffic here
    """
    database = check_database_health(request.app.state.engine)
    healthy = database["status"] == "healthy"
    content = {
        "status": "healthy" if healthy else "unhealthy",
        "checks": {"database": database},
    }
    if not healthy:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=content)
    return content


@health_router.get("/health/live")
def liveness_check():
    """Liveness probe: succeeds whenever the process is serving requests."""
    return {"status": "alive"}


@health_router.get("/health/ready")
def readiness_check(request: Request):
    """Readiness probe: 503 until the database answers."""
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "error": "Database unavailable"},
        )
    return {"status": "ready"}


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Settings | None = None,
    delivery: CodeDeliveryChannel | None = None,
) -> FastAPI:
    """
    Build a fully wired application.

    Args:
        settings: Configuration; read from the environment when omitted.
            Invalid configuration (e.g. missing JWT_SECRET_KEY) raises here.
        delivery: Code delivery channel; chosen from settings when omitted
            (SMTP if configured, otherwise the in-memory outbox)

    Returns:
        The FastAPI application
    """
    settings = settings or Settings()
    setup_logging(level=settings.log_level, log_format=settings.log_format)

    engine = create_db_engine(settings)
    hasher = PasswordHasher.from_settings(settings)
    codec = TokenCodec.from_settings(settings)
    denylist = TokenDenylist()
    users = UserStore()

    app = FastAPI(
        title=settings.app_name,
        description="Account sign-up, sign-in, one-time codes and profile API",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.password_hasher = hasher
    app.state.user_store = users
    app.state.profile_store = ProfileStore()
    app.state.delivery = delivery or create_delivery_channel(settings)
    app.state.auth_middleware = AuthMiddleware(codec=codec, denylist=denylist)
    app.state.credential_service = CredentialService(
        settings=settings,
        hasher=hasher,
        codec=codec,
        codes=OneTimeCodeStore(otp_length=settings.otp_length),
        denylist=denylist,
        users=users,
        delivery=app.state.delivery,
    )

    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(health_router)

    return app
