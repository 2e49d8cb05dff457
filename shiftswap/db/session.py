from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager, suppress

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

import shiftswap.core.logger  # noqa: F401  # configures loguru sinks
from shiftswap.config.settings import settings
from shiftswap.core.errors import (
    ConcurrentModificationError,
    ConflictError,
    PersistenceTimeoutError,
    ServerError,
    ShiftSwapError,
)

# Lazy initialization to avoid import-time database connections
_engine = None
_SessionLocal = None

_TIMEOUT_MARKERS = ("database is locked", "timeout", "timed out", "canceling statement")


def _is_postgresql(url: str) -> bool:
    lowered = url.lower()
    return "postgresql" in lowered or "postgres" in lowered


def _validate_postgresql_driver() -> None:
    """Fail early with an actionable message when psycopg2 is missing."""
    try:
        import psycopg2  # noqa: F401

        logger.info("PostgreSQL driver (psycopg2) is available")
    except ImportError as e:
        logger.error("PostgreSQL driver (psycopg2) is not installed. Install it with: pip install shiftswap[postgres]")
        raise ImportError("PostgreSQL driver required. Install with: pip install psycopg2-binary") from e


def _connect_args(url: str) -> dict:
    """Driver arguments that bound every database call by the persistence timeout."""
    timeout = settings.persistence_timeout_seconds
    if "sqlite" in url.lower():
        # sqlite3 waits up to `timeout` seconds on a locked database before failing
        return {"check_same_thread": False, "timeout": timeout}
    if _is_postgresql(url):
        return {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
            "application_name": "shiftswap",
        }
    return {}


def _get_engine():
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        url = settings.database_url
        logger.info(f"Initializing database engine: {url}")
        if _is_postgresql(url):
            _validate_postgresql_driver()
        else:
            logger.warning("Using SQLite database (local development only)")
        engine_kwargs: dict = {}
        if "sqlite" not in url.lower():
            engine_kwargs = {
                "pool_pre_ping": True,
                "pool_recycle": 3600,
                "pool_timeout": settings.persistence_timeout_seconds,
            }
        _engine = create_engine(
            url,
            connect_args=_connect_args(url),
            echo=False,
            **engine_kwargs,
        )
        logger.info("Database engine initialized")
    return _engine


def _get_session_local():
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def init_db() -> None:
    """Create all tables that do not exist yet."""
    from shiftswap.db.models import Base

    Base.metadata.create_all(bind=_get_engine())
    logger.info("Database schema ensured")


def _handle_session_commit(session: Session) -> None:
    """Handle session commit with logging."""
    with suppress(Exception):
        logger.debug(f"Before commit: dirty={len(session.dirty)}, new={len(session.new)}, deleted={len(session.deleted)}")
    # Always commit: work flushed earlier in the block is not visible in dirty/new
    session.commit()
    logger.debug("Database session committed successfully")


def _translate_database_error(e: SQLAlchemyError) -> ShiftSwapError:
    """Map a SQLAlchemy failure onto the engine's error taxonomy."""
    if isinstance(e, StaleDataError):
        return ConcurrentModificationError(f"concurrent modification detected: {e}")
    if isinstance(e, PoolTimeoutError):
        return PersistenceTimeoutError(f"database pool checkout timed out: {e}")
    if isinstance(e, OperationalError) and any(marker in str(e).lower() for marker in _TIMEOUT_MARKERS):
        return PersistenceTimeoutError(f"database call timed out: {e.orig}")
    if isinstance(e, IntegrityError):
        return ConflictError(f"uniqueness violation: {e.orig}")
    return ServerError(f"database error: {type(e).__name__}: {e}")


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager.

    Commits when the block exits normally; rolls back on any exception so a
    failed operation never leaves partial state behind.

    - ShiftSwapError: Re-raised unchanged (business rule, not a database error)
    - StaleDataError: Raised as ConcurrentModificationError (retryable)
    - SQLAlchemyError: Logged and raised as the matching ServerError subclass
    """
    logger.debug("Creating new database session")
    session = _get_session_local()()
    try:
        yield session
        _handle_session_commit(session)
    except ShiftSwapError:
        logger.debug("Domain error in session, rolling back")
        session.rollback()
        raise
    except StaleDataError as e:
        logger.bind(error=str(e)).warning("Version check failed, rolling back")
        session.rollback()
        raise _translate_database_error(e) from e
    except SQLAlchemyError as e:
        translated = _translate_database_error(e)
        if isinstance(translated, ConflictError):
            logger.bind(error=str(e)).warning("Integrity error in session, rolling back")
        else:
            logger.error(f"Database session error, rolling back: {type(e).__name__}: {e}")
            logger.exception("Full exception traceback:")
        session.rollback()
        raise translated from e
    except Exception:
        logger.exception("Unexpected error in session, rolling back")
        session.rollback()
        raise
    finally:
        session.close()
        logger.debug("Database session closed")
