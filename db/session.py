"""Database session management for the booking core."""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine as sa_create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.config import settings


class DatabaseConfig:
    """Database configuration settings."""

    # Connection pool settings
    POOL_SIZE: int = settings.db_pool_size
    MAX_OVERFLOW: int = settings.db_max_overflow
    POOL_TIMEOUT: int = 30
    POOL_RECYCLE: int = 3600
    POOL_PRE_PING: bool = True

    # Query settings
    ECHO: bool = settings.db_echo

    # SQLite: allow use across threads, wait on the write lock
    SQLITE_CONNECT_ARGS: dict = {
        "check_same_thread": False,
        "timeout": 15,
    }


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine(
    url: Optional[str] = None,
    pool_size: int = DatabaseConfig.POOL_SIZE,
    max_overflow: int = DatabaseConfig.MAX_OVERFLOW,
    echo: bool = DatabaseConfig.ECHO,
) -> Engine:
    """
    Create SQLAlchemy engine.

    Args:
        url: Database URL (defaults to settings.database_url)
        pool_size: Number of connections to maintain in pool
        max_overflow: Max number of connections to create beyond pool_size
        echo: Whether to log all SQL statements

    Returns:
        SQLAlchemy engine
    """
    url = url or settings.database_url

    if _is_sqlite(url):
        engine = sa_create_engine(
            url,
            echo=echo,
            connect_args=DatabaseConfig.SQLITE_CONNECT_ARGS,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return sa_create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=DatabaseConfig.POOL_TIMEOUT,
        pool_recycle=DatabaseConfig.POOL_RECYCLE,
        pool_pre_ping=DatabaseConfig.POOL_PRE_PING,
    )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(bind: Engine) -> sessionmaker:
    """Session factory bound to ``bind``."""
    return sessionmaker(
        bind=bind,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine instance
engine: Engine = create_engine()

# Session factory
SessionLocal = create_session_factory(engine)


def get_session() -> Generator[Session, None, None]:
    """
    Dependency for getting a database session.

    Yields:
        Session instance

    Example:
        def my_view(session: Session = Depends(get_session)):
            # use session
            pass
    """
    with SessionLocal() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


@contextmanager
def get_session_context(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for getting a database session.

    Commits on success, rolls back on any exception.

    Example:
        with get_session_context() as session:
            # use session
            pass
    """
    with (factory or SessionLocal)() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def init_db(bind: Optional[Engine] = None) -> None:
    """Initialize database by creating all tables."""
    from .base import Base
    from . import models_sqlalchemy  # noqa: F401

    Base.metadata.create_all(bind or engine)


def drop_db(bind: Optional[Engine] = None) -> None:
    """Drop all database tables. Use with caution!"""
    from .base import Base

    Base.metadata.drop_all(bind or engine)


def close_db() -> None:
    """Close database engine and all connections."""
    engine.dispose()
