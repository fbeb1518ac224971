"""
Engine and session factory construction.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseConfig, get_settings
from .logging import get_logger

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite only honours ON DELETE CASCADE with the pragma set on each connection
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Build the engine for the configured backend.

    Example:
        >>> engine = create_database_engine(DatabaseConfig(sqlite_path=":memory:"))
    """
    config = config or get_settings().database
    url = config.get_url()
    logger.info(f"Opening {config.backend} database at {url.render_as_string(hide_password=True)}")

    try:
        engine = create_engine(url, **config.get_engine_options())
    except Exception as e:
        logger.error(f"Failed to create database engine: {str(e)}")
        raise

    if config.backend == "sqlite":
        _enable_sqlite_foreign_keys(engine)
    return engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    if engine is None:
        engine = create_database_engine()
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
