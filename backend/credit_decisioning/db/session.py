"""Database session configuration with async SQLAlchemy."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from credit_decisioning.config import settings
from credit_decisioning.db.base import Base

# Convert postgresql:// to postgresql+asyncpg://
database_url = settings.DATABASE_URL
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

engine_options = {
    "echo": settings.ENVIRONMENT == "development",
    "pool_pre_ping": True,
}
if settings.ENVIRONMENT == "test":
    engine_options["poolclass"] = NullPool

engine = create_async_engine(database_url, **engine_options)

# Create session factory
SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Create any missing tables for the registered domain models."""
    # Importing the domain package registers its tables on Base.metadata
    import credit_decisioning.models.domain  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
