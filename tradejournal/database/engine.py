"""
SQLAlchemy engine factory and session management for the trade journal.

Provides a module-level engine and a get_session() context manager that
commits on success and rolls back on exception.  Supports both SQLite and
PostgreSQL; the dialect is selected at init time based on the URL prefix.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from tradejournal import config

logger = logging.getLogger(__name__)

# Module-level state
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None
_dialect: Optional[str] = None  # "sqlite" or "postgresql"


def init_engine(db_url: str = None) -> Engine:
    """Create (or replace) the module-level SQLAlchemy engine.

    Args:
        db_url: Full SQLAlchemy database URL. If None, uses config.DATABASE_URL.

    Call once at startup, typically inside DatabaseManager.initialize_database().
    """
    global _engine, _SessionFactory, _dialect

    if db_url is None:
        db_url = config.DATABASE_URL

    if _engine is not None:
        _engine.dispose()

    _dialect = "postgresql" if db_url.startswith("postgresql") else "sqlite"

    if _dialect == "sqlite":
        _engine = create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},  # required for FastAPI
        )

        # Enable foreign keys for every connection (SQLite-specific)
        @event.listens_for(_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        _engine = create_engine(
            db_url,
            echo=False,
            pool_size=5,
            max_overflow=10,
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("SQLAlchemy engine initialized (%s): %s", _dialect, db_url.split("@")[-1] if "@" in db_url else db_url)
    return _engine


def get_engine() -> Engine:
    """Return the current engine (raises if init_engine hasn't been called)."""
    if _engine is None:
        raise RuntimeError("SQLAlchemy engine not initialized; call init_engine() first")
    return _engine


@contextmanager
def get_session() -> Iterator[Session]:
    """Context manager yielding a SQLAlchemy Session.

    Commits on clean exit, rolls back on exception.  Everything written
    inside one ``with`` block is one unit of work.
    """
    if _SessionFactory is None:
        raise RuntimeError("SQLAlchemy engine not initialized; call init_engine() first")

    session: Session = _SessionFactory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
