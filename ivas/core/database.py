"""Async SQLAlchemy engine, session dependency and database client.

This module centralizes the async SQLAlchemy session dependency in the
core layer so it can be reused across the application.
"""

from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from ivas.core.config import settings
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def engine_options(url: str) -> Dict[str, Any]:
    """Build engine keyword arguments appropriate for the driver in ``url``."""
    options: Dict[str, Any] = {"echo": settings.database_echo, "future": True}
    if url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        options["poolclass"] = NullPool
        options["connect_args"] = {"timeout": 30}
        return options

    options["pool_size"] = settings.database_pool_size
    options["max_overflow"] = settings.database_max_overflow
    options["pool_pre_ping"] = True
    if "+asyncpg" in url:
        # Disable prepared statement cache for PgBouncer compatibility
        options["connect_args"] = {"statement_cache_size": 0}
    return options


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by request handlers and the hub."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

async_session_maker = build_session_maker(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting async database session.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


class DatabaseClient:
    """Database client with connection and schema management."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine
        self._connected = False

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            self._connected = True
            LOGGER.info("Database connection successful")
            return True

        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        """Close database connection."""
        await self.engine.dispose()
        self._connected = False
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create all tables from the ORM metadata without dropping existing ones."""
        # Import models so every table is registered on Base.metadata
        from ivas.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        LOGGER.info("Database tables created/verified successfully")

    async def drop_tables(self) -> None:
        """Drop all database tables.

        WARNING: This will delete all data!
        """
        from ivas.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        LOGGER.warning("All database tables dropped")

    async def health_check(self) -> dict:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))

            self._connected = True
            return {
                "status": "healthy",
                "connected": True,
                "dialect": self.engine.dialect.name,
                "latency_test": "passed" if val == 1 else "failed",
            }

        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {
                "status": "unhealthy",
                "connected": False,
                "error": str(e),
            }

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected


# Global database client instance
db_client = DatabaseClient(engine)


async def init_database(auto_migrate: bool = True) -> None:
    """Initialize database connection and optionally create missing tables.

    Args:
        auto_migrate: Whether to create missing tables on startup. Production
            deployments run Alembic instead and disable this.
    """
    LOGGER.info("Initializing database connection...")
    await db_client.connect()

    if auto_migrate:
        await db_client.create_tables()

    LOGGER.info("Database initialization completed")


async def close_database() -> None:
    """Close database connection."""
    LOGGER.info("Closing database connection...")
    await db_client.disconnect()
