"""
Database session management and initialization.
Provides async database sessions for the letter store.
"""

from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from letterbox.core.config import settings
from letterbox.models.database import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool options suited to the backend."""
    engine_kwargs = {"echo": echo}

    if database_url.startswith("sqlite"):
        if ":memory:" in database_url:
            # One shared connection, otherwise every checkout sees an empty database
            engine_kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
    else:
        engine_kwargs.update({
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        })

    return create_async_engine(database_url, **engine_kwargs)


class DatabaseManager:
    """Owns the engine and hands out sessions."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.async_session_factory: Optional[async_sessionmaker] = None

    def init_db(self, database_url: Optional[str] = None):
        """Initialize database engine and session factory."""
        url = database_url or str(settings.database_url)
        self.engine = build_engine(url, echo=settings.debug)
        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine initialized")

    async def create_tables(self):
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session; roll back if the caller raised.

        Services commit their own writes, so nothing is committed here.
        """
        async with self.async_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            logger.info("Database connections closed")

    async def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    async for session in db_manager.get_session():
        yield session


async def init_database():
    """Initialize database on application startup."""
    db_manager.init_db()
    await db_manager.create_tables()


async def close_database():
    """Close database connections on application shutdown."""
    await db_manager.close()
