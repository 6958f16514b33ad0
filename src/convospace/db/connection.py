"""
Database connection management for ConvoSpace.

Provides database session management, connection handling, and transaction support.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from convospace.config import settings
from convospace.models.db import Base

logger = logging.getLogger(__name__)

# Create engine instance (singleton pattern)
if settings.database_url.startswith("sqlite"):
    _sqlite_kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in settings.database_url:
        # Share one connection so every session sees the same in-memory schema
        _sqlite_kwargs["poolclass"] = StaticPool

    engine = create_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        **_sqlite_kwargs,
    )

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):  # pragma: no cover - compat hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

else:
    # Each uvicorn worker gets its own pool.
    # Total connections = workers x (pool_size + max_overflow)
    engine = create_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )

# Create session factory for API requests
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Ensure tables exist for SQLite runs (in-memory databases don't persist schema)
if settings.database_url.startswith("sqlite"):
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session: A new SQLAlchemy session
    """
    return SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example (FastAPI):
        >>> @router.get("/profile")
        >>> def profile(db: Session = Depends(get_db)):
        >>>     return UserRepository(db).get(1)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     user = UserRepository(db).get_by_email("a@example.com")
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """
    Create all tables programmatically.

    Note:
        Prefer using Alembic migrations: `alembic upgrade head`
    """
    Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
