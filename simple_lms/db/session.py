import logging
from typing import AsyncGenerator

from sqlalchemy import NullPool
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from simple_lms.config import get_settings
from simple_lms.model import Base

logger = logging.getLogger(__name__)

settings = get_settings()


def create_engine(database_url: str) -> AsyncEngine:
    """
    Build the async engine.

    PostgreSQL connections are not pooled in-process (the database sits
    behind a pooler); SQLite keeps the driver's default pool.
    """
    options = {"echo": settings.environment == "development"}
    if not database_url.startswith("sqlite"):
        options["poolclass"] = NullPool
    return create_async_engine(database_url, **options)


engine = create_engine(settings.database_url)
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_database() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injecting one database session per request.

    A request that fails mid-transaction leaves nothing half-written.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back session of a failed request")
            await session.rollback()
            raise


async def init_db():
    """Create tables outside production, where migrations own the schema"""
    if settings.environment == "production":
        return
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db():
    await engine.dispose()
