"""
SQLAlchemy database setup for the stack store.

``open_database()`` only builds the engine and session factory; the schema
is created by the separate ``Database.migrate()`` step.
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .models import StoreError


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Handle to an opened stack database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def migrate(self) -> None:
        """Create any missing tables."""
        # Import rows so every table is registered on Base.metadata
        from . import schema  # noqa: F401

        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Database migration failed: {e}")
            raise StoreError(f"Failed to migrate database: {e}") from e
        logger.debug("Database schema is up to date")

    @contextlib.contextmanager
    def session(self) -> Iterator[Session]:
        """Open a unit of work. Commits on clean exit, rolls back on exception."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


def open_database(path: Union[str, Path]) -> Database:
    """Open (creating if needed) the SQLite database at ``path``.

    Raises:
        StoreError: if the file cannot be created or connected to
    """
    db_path = Path(path).expanduser()
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(f"sqlite:///{db_path}")
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError) as e:
        logger.error(f"Error opening database {db_path}: {e}")
        raise StoreError(f"Failed to open database at {db_path}: {e}") from e

    logger.info(f"Opened database: {db_path}")
    return Database(engine)
