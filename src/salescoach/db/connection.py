"""
Database connection management for SalesCoach.

Provides database session management, connection handling, and transaction support.

The engine is created lazily on first use so that importing the application
(e.g. in tests that override ``get_db``) never opens a connection.
"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from salescoach.config import settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """
    Get the process-wide SQLAlchemy engine.

    Returns:
        Engine: Pooled engine for PostgreSQL, or a thread-shareable SQLite engine
    """
    if settings.database_url.startswith("sqlite"):
        from sqlalchemy import JSON, event
        from sqlalchemy.dialects import postgresql

        from salescoach.models.db import Base

        # Replace JSONB with JSON for SQLite compatibility
        @event.listens_for(Base.metadata, "before_create")
        def _set_json_type(target, connection, **kw):  # pragma: no cover - compat hook
            for table in target.tables.values():
                for column in table.columns:
                    if isinstance(column.type, postgresql.JSONB):
                        column.type = JSON()

        return create_engine(
            settings.database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )

    # Each uvicorn worker gets its own pool.
    # Total connections = workers × (pool_size + max_overflow)
    return create_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,  # Verify connections before using
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    """Get the session factory bound to the shared engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example (FastAPI):
        >>> @app.get("/profiles")
        >>> def get_profiles(db: Session = Depends(get_db)):
        >>>     return db.query(Profile).all()
    """
    session = get_session_factory()()
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
        >>>     profile = ProfileRepository(db).get_by_auth_id(auth_id)
    """
    session = get_session_factory()()
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
    Initialize the database.

    Creates tables programmatically. In production prefer Alembic
    migrations: `alembic upgrade head`.
    """
    from salescoach.models.db import Base

    Base.metadata.create_all(bind=get_engine())


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
    except Exception:
        return False
