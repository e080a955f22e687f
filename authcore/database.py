# authcore/database.py
"""
Database connection and session management.

This module configures SQLAlchemy with:
- Connection pooling for production performance
- Bounded waits (pool checkout, lock/statement timeouts)
- Environment-aware settings (test vs production)
- Health check capabilities

The engine and session factory are built from an explicit Settings object
by ``create_app()`` and stored on ``app.state``; ``get_db`` hands out one
session per request from there.
"""

import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from authcore.config import Settings

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> Engine:
    """
    Create SQLAlchemy engine with environment-appropriate configuration.

    Configuration varies by database type:
    - SQLite: StaticPool for in-memory databases, busy timeout for locks
    - PostgreSQL: QueuePool with configurable pooling and statement_timeout
    """
    if settings.is_sqlite:
        logger.info("Configuring SQLite database")
        pool_kwargs = {}
        if ":memory:" in settings.database_url:
            # A single shared connection keeps the in-memory database alive
            pool_kwargs["poolclass"] = StaticPool
        return create_engine(
            settings.database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.db_statement_timeout_seconds,
            },
            echo=settings.debug,
            **pool_kwargs,
        )

    logger.info(
        f"Configuring PostgreSQL database pool: "
        f"size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}, "
        f"recycle={settings.db_pool_recycle}s, "
        f"statement_timeout={settings.db_statement_timeout_seconds}s"
    )

    statement_timeout_ms = settings.db_statement_timeout_seconds * 1000
    return create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=settings.db_pool_timeout_seconds,
        connect_args={"options": f"-c statement_timeout={statement_timeout_ms}"},
        echo=settings.debug,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Build the session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Yields:
        Session: A SQLAlchemy database session that auto-closes after use.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def check_database_health(engine: Engine) -> dict:
    """
    Check database connectivity.

    Returns:
        dict: Health status with connection info
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": engine.dialect.name,
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": engine.dialect.name,
        }
