"""
Database session management for the NAMASTE terminology bridge.

Provides async SQLAlchemy engine and session creation for database operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator

from namaste_bridge.config import settings


def async_database_url(url: str) -> str:
    """Rewrite a plain database URL to use an async driver."""
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


_database_url = async_database_url(settings.database_url)

# Create async engine
engine = create_async_engine(
    _database_url,
    echo=settings.debug,  # Log SQL queries in debug mode
    # aiosqlite connections must not outlive the event loop that opened them
    poolclass=NullPool if _database_url.startswith("sqlite") else None,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """
    Initialize database tables.

    Creates all tables defined in the models module.
    """
    async with engine.begin() as conn:
        # Import models to ensure they're registered
        from namaste_bridge.db import models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """Drop all tables. Used by the test suite to reset state."""
    async with engine.begin() as conn:
        from namaste_bridge.db import models  # noqa: F401
        await conn.run_sync(Base.metadata.drop_all)
