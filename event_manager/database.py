"""Database engine, session factory and store lifecycle.

The engine is the only process-wide store handle. It is created when this
module is imported, its tables are created by ``init_db()`` at application
startup (SQLite dev mode; Postgres goes through Alembic), and it is disposed
by ``close_db()`` on shutdown.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from event_manager.config import settings
from event_manager.errors import InternalError

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(url: str):
    """Create an engine; SQLite connections get foreign keys enforced."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create tables for SQLite deployments that skip migrations."""
    # Register models with Base.metadata
    from event_manager import models  # noqa: F401

    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")


def close_db() -> None:
    engine.dispose()
    logger.info("Database connections closed")


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back.

    A store that cannot be reached or stays locked surfaces as
    ``InternalError``; integrity violations are left for the caller to map.
    """
    try:
        yield db
        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.error("Store operation failed, rolled back: %s", exc)
        raise InternalError() from exc
    except Exception:
        db.rollback()
        raise
