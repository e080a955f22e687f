# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Test settings (cheap Argon2 parameters, fixed signing secret)
- Database fixtures (in-memory SQLite, default roles seeded)
- Service fixtures (hasher, codec, stores, credential service)
- Application fixtures (TestClient with an in-memory delivery outbox)
- User factories
"""

import os
from datetime import date
from typing import Callable, Iterator

import pytest

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-at-least-32-chars-long")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from authcore.config import Settings
from authcore.database import create_db_engine, create_session_factory
from authcore.init_db import initialize_database
from authcore.main import create_app
from authcore.models import Base, Profile, User, UserRole
from authcore.services.auth.codes import OneTimeCodeStore
from authcore.services.auth.delivery import InMemoryDeliveryChannel
from authcore.services.auth.denylist import TokenDenylist
from authcore.services.auth.password import PasswordHasher
from authcore.services.auth.service import CredentialService
from authcore.services.auth.tokens import TokenCodec, TokenPurpose
from authcore.services.user_store import UserStore

TEST_SECRET = "test-secret-key-at-least-32-chars-long"
DEFAULT_PASSWORD = "Password123"


def build_settings(**overrides) -> Settings:
    """Settings for tests: in-memory SQLite and fast hashing."""
    values = dict(
        environment="test",
        database_url="sqlite:///:memory:",
        jwt_secret_key=TEST_SECRET,
        password_hash_time_cost=1,
        password_hash_memory_cost=1024,
        password_hash_parallelism=1,
        password_hash_workers=2,
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# SETTINGS & DATABASE
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest.fixture(scope="function")
def db_engine(settings: Settings) -> Iterator[Engine]:
    """In-memory SQLite engine with schema and default roles."""
    engine = create_db_engine(settings)
    initialize_database(engine, create_session_factory(engine))
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine: Engine) -> Iterator[Session]:
    session = create_session_factory(db_engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path) -> Iterator[sessionmaker[Session]]:
    """
    Session factory on a file-backed SQLite database.

    Unlike the in-memory engine, every session gets its own connection,
    so threads can race against each other.
    """
    engine = create_db_engine(build_settings(database_url=f"sqlite:///{tmp_path / 'race.db'}"))
    factory = create_session_factory(engine)
    initialize_database(engine, factory)
    yield factory
    engine.dispose()


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def hasher(settings: Settings) -> Iterator[PasswordHasher]:
    service = PasswordHasher.from_settings(settings)
    yield service
    service.shutdown()


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def code_store() -> OneTimeCodeStore:
    return OneTimeCodeStore()


@pytest.fixture
def denylist() -> TokenDenylist:
    return TokenDenylist()


@pytest.fixture
def user_store() -> UserStore:
    return UserStore()


@pytest.fixture
def outbox() -> InMemoryDeliveryChannel:
    return InMemoryDeliveryChannel()


@pytest.fixture
def credential_service(
    settings: Settings,
    hasher: PasswordHasher,
    codec: TokenCodec,
    code_store: OneTimeCodeStore,
    denylist: TokenDenylist,
    user_store: UserStore,
    outbox: InMemoryDeliveryChannel,
) -> CredentialService:
    return CredentialService(
        settings=settings,
        hasher=hasher,
        codec=codec,
        codes=code_store,
        denylist=denylist,
        users=user_store,
        delivery=outbox,
    )


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_user(db: Session, hasher: PasswordHasher) -> Callable[..., User]:
    """
    Factory that inserts a user with profile and the default role.

    Usage:
        alice = make_user("alice", is_verified=True)
    """

    def _make(
        username: str = "alice",
        password: str = DEFAULT_PASSWORD,
        email: str | None = None,
        is_verified: bool = True,
        telephone: str | None = None,
    ) -> User:
        user = User(
            username=username,
            email=email if email is not None else f"{username}@example.com",
            hashed_password=hasher.hash(password),
            is_verified=is_verified,
        )
        db.add(user)
        db.flush()
        db.add(Profile(user_id=user.id, date_of_birth=date(1990, 1, 1), telephone=telephone))
        db.add(UserRole(user_id=user.id, role_slug="user"))
        db.commit()
        db.refresh(user)
        return user

    return _make


# =============================================================================
# APPLICATION
# =============================================================================

@pytest.fixture
def app(settings: Settings, outbox: InMemoryDeliveryChannel) -> FastAPI:
    return create_app(settings, delivery=outbox)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """TestClient with lifespan (schema + default roles created at startup)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(client: TestClient) -> Iterator[Session]:
    """Session on the application's own database."""
    session = client.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def sign_up_payload(username: str = "alice", **overrides) -> dict:
    payload = {
        "username": username,
        "email": f"{username}@example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": username.capitalize(),
        "date_of_birth": "1990-04-01",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def register(client: TestClient, outbox: InMemoryDeliveryChannel) -> Callable[..., dict]:
    """
    Sign up through the API and (by default) verify the account.

    Returns the sign-up response data.
    """

    def _register(username: str = "alice", verify: bool = True, **overrides) -> dict:
        response = client.post("/sign-up", json=sign_up_payload(username, **overrides))
        assert response.status_code == 201, response.json()
        if verify:
            message = outbox.latest(TokenPurpose.EMAIL_VERIFY, username=username)
            verified = client.post(
                "/verify-account",
                json={"identifier": username, "code": message.code},
            )
            assert verified.status_code == 200, verified.json()
        return response.json()["data"]

    return _register


@pytest.fixture
def sign_in(client: TestClient) -> Callable[..., dict[str, str]]:
    """Sign in through the API and return Authorization headers."""

    def _sign_in(username: str = "alice", password: str = DEFAULT_PASSWORD) -> dict[str, str]:
        response = client.post("/sign-in", json={"username": username, "password": password})
        assert response.status_code == 200, response.json()
        return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}

    return _sign_in
