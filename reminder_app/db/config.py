"""Database configuration for the reminder service."""
import logging
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from reminder_app.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create the SQLModel engine, with SQLite pragmas for local development."""
    if database_url.startswith("sqlite"):
        new_engine = create_engine(
            database_url, echo=False, connect_args={"check_same_thread": False}
        )

        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Foreign keys on, WAL for concurrent readers during conditional updates
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        logger.info(f"Using SQLite database: {database_url}")
        return new_engine

    logger.info("Using PostgreSQL database")
    return create_engine(database_url, echo=False, pool_pre_ping=True)


engine = build_engine(get_settings().database_url)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
