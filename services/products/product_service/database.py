"""
Database configuration and session management for the Products service.

This module sets up the database connection using SQLAlchemy, provides
a session factory for database operations, and the unit-of-work helper
every multi-statement write goes through.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL, STATEMENT_TIMEOUT_MS
from .errors import MarketplaceError, PersistenceFailure

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live on a single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    if url.startswith("postgresql") and STATEMENT_TIMEOUT_MS > 0:
        return {"connect_args": {"options": f"-c statement_timeout={STATEMENT_TIMEOUT_MS}"}}
    return {}


# Create SQLAlchemy engine
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def get_db():
    """
    Dependency function that provides a database session.

    Yields:
        Session: SQLAlchemy database session

    Usage:
        Use as a FastAPI dependency to inject database sessions into route handlers.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, action: str) -> Iterator[Session]:
    """
    Run a group of statements as one all-or-nothing step.

    Commits when the block exits normally. Any exception, including a
    cancellation delivered to the calling thread, rolls back everything
    written inside the block before propagating. Store errors are re-raised
    as PersistenceFailure.

    Args:
        db: Database session
        action: Short description used in log and error messages
    """
    try:
        yield db
        db.commit()
    except MarketplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action}, rolled back: {e}")
        raise PersistenceFailure(f"Failed to {action}: {e}") from e
    except BaseException:
        db.rollback()
        logger.error(f"Interrupted while trying to {action}, rolled back")
        raise
