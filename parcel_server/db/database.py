"""
Database Connection and Session Management
"""
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from parcel_server.core.config import settings


def _engine_options(database_url: str) -> dict[str, Any]:
    """Pool and statement bounds so a stalled query fails instead of hanging"""
    options: dict[str, Any] = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if database_url.startswith("postgresql+asyncpg"):
        options["pool_timeout"] = settings.DB_POOL_TIMEOUT_SECONDS
        options["connect_args"] = {"command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS}
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
