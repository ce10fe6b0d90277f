"""
ProjectHub Database Configuration

SQLAlchemy async engine with SQLite for development.
Supports migration to PostgreSQL for production.

The engine is created lazily on first use and disposed explicitly on
shutdown, so importing this module never opens a connection.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import event
from .config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def configure_sqlite(dbapi_connection, connection_record):
    """Configure SQLite for better concurrency."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")  # Enable WAL for better concurrency
    cursor.execute("PRAGMA busy_timeout=30000")  # 30 second timeout for busy locks
    cursor.close()


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine, _session_factory
    if _engine is None:
        connect_args = {}
        if settings.is_sqlite:
            connect_args = {
                "timeout": 30,  # Wait up to 30 seconds for locks
                "check_same_thread": False,
            }
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            connect_args=connect_args,
        )
        if settings.is_sqlite:
            event.listen(_engine.sync_engine, "connect", configure_sqlite)
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get the session factory bound to the process-wide engine."""
    get_engine()
    return _session_factory


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    # Register all models on Base.metadata before creating tables
    from . import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
