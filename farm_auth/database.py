"""
Database configuration and session management for the farm portal authentication service.

This module provides SQLAlchemy setup, session management, the FastAPI
session dependency, and database initialization functionality.
"""
from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from farm_auth.config import settings

# Create SQLAlchemy base class for models
Base = declarative_base()


class Database:
    """Database connection and session management."""

    def __init__(self, db_url: Optional[str] = None):
        """
        Initialize the database connection.

        Args:
            db_url: Database URL. If None, uses the URL from settings.
        """
        if db_url is None:
            db_url = settings.DATABASE_URL

        connect_args = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            db_url,
            connect_args=connect_args,
            echo=settings.DATABASE_ECHO
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create all tables defined in the models."""
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            A new SQLAlchemy session.
        """
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, Any, None]:
        """
        Context manager for database sessions.

        Rolls back on error and always closes the session. Writers commit
        explicitly so a response is never sent before its data is persisted.

        Yields:
            An active SQLAlchemy session.
        """
        session = self.get_session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Default database instance, created lazily by init_db or first use
db: Optional[Database] = None


def _get_db() -> Database:
    global db
    if db is None:
        db = Database()
    return db


# PUBLIC_INTERFACE
def init_db(db_url: Optional[str] = None) -> None:
    """
    Initialize the database with all required tables.

    Args:
        db_url: Optional database URL. If None, uses the configured URL.
    """
    global db
    # Models must be registered on Base before create_all
    import farm_auth.models  # noqa: F401

    db = Database(db_url)
    db.create_all()


# PUBLIC_INTERFACE
def get_session() -> Generator[Session, Any, None]:
    """
    FastAPI dependency yielding one database session per request.

    Yields:
        An active SQLAlchemy session.
    """
    with _get_db().session_scope() as session:
        yield session

