# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database session management.

This module provides database session management utilities including
the get_db dependency for FastAPI, the session factory and the
transaction helper used by every multi-statement write.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from pressledger.config import settings
from pressledger.errors import CompensationError, PersistenceError
from pressledger.logging_config import get_logger

logger = get_logger(__name__)

# Create database engine
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_recycle=3600,  # Recycle connections after 1 hour
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def enable_sqlite_foreign_keys(target_engine) -> None:
    """Turn on foreign key enforcement for SQLite connections.

    SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection.
    """
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)


def get_db() -> Iterator[Session]:
    """Dependency for getting database session.

    Yields:
        Session: Database session

    Example:
        @router.get("/cycles/{cycle_id}")
        def read_cycle(cycle_id: int, db: Session = Depends(get_db)):
            return get_cycle(db, cycle_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(session: Session, action: str, entity: str) -> Iterator[Session]:
    """Run a block of writes as one unit: commit on success, roll back on error.

    Args:
        session: Database session
        action: Operation name used when wrapping store errors (insert, update, ...)
        entity: Table or entity name used when wrapping store errors

    Raises:
        PersistenceError: If the store fails; the cause is chained
        CompensationError: If the rollback fails after an error

    Assumptions:
    - Domain errors raised inside the block pass through unchanged
      after the rollback
    - No retries
    """
    try:
        yield session
        session.commit()
    except Exception as exc:
        try:
            session.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.error(
                "transaction_rollback_failed",
                action=action,
                entity=entity,
                error=str(exc),
                rollback_error=str(rollback_exc),
            )
            raise CompensationError(exc, rollback_exc) from rollback_exc

        if isinstance(exc, SQLAlchemyError):
            raise PersistenceError(action, entity, exc) from exc
        raise


@contextmanager
def store_errors(action: str, entity: str) -> Iterator[None]:
    """Wrap store failures of a read in PersistenceError.

    Args:
        action: Operation name (usually "select")
        entity: Table or entity name
    """
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(action, entity, exc) from exc


def init_db() -> None:
    """Initialize database tables if they don't exist.

    This should be called during application startup to ensure all
    database tables are created. Uses SQLAlchemy's create_all() which
    only creates tables that don't already exist.

    Assumptions:
    - Safe to call multiple times
    - Does not drop or modify existing tables
    """
    from pressledger.database.schema import Base  # Import here to avoid circular imports
    from sqlalchemy import inspect

    inspector = inspect(engine)
    existing_tables = inspector.get_table_names()

    if existing_tables:
        logger.info("database_tables_present", count=len(existing_tables))
    else:
        logger.info("database_initializing", url=settings.database_url)
        Base.metadata.create_all(bind=engine)
