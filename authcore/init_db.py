# authcore/init_db.py
"""
Database initialization.

Creates every table defined in ``authcore.models`` and seeds the default
roles. Safe to run repeatedly: existing tables and roles are left alone.

Runs automatically at application start when AUTO_CREATE_SCHEMA is true
(the default outside production), or by hand:
    python -m authcore.init_db
"""

import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from authcore.models import Base
from authcore.services.user_store import UserStore

logger = logging.getLogger(__name__)


def initialize_database(
    engine: Engine,
    session_factory: sessionmaker[Session],
    users: UserStore | None = None,
) -> None:
    """Create all tables and make sure the default roles exist."""
    Base.metadata.create_all(bind=engine)
    with session_factory() as db:
        (users or UserStore()).ensure_default_roles(db)
    logger.info("Database schema ready")


if __name__ == "__main__":
    from authcore.config import Settings
    from authcore.database import create_db_engine, create_session_factory
    from authcore.utils import setup_logging

    settings = Settings()
    setup_logging(level=settings.log_level, log_format=settings.log_format)
    db_engine = create_db_engine(settings)
    initialize_database(db_engine, create_session_factory(db_engine))
