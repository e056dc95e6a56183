# -*- coding: utf-8 -*-
"""
Async database engine and session factory.

PostgreSQL through asyncpg in production; sqlite through aiosqlite for local
runs and tests.
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.settings import settings
from attempt_engine.domain.models import Base

logger = configure_logger(__name__)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool tuning only applies to server databases."""
    options = {"echo": echo}
    if not url.startswith("sqlite"):
        options.update(pool_pre_ping=True, pool_recycle=3600, pool_size=10)
    return create_async_engine(url, **options)


async_engine = build_engine(settings.database_url, settings.database_echo)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    The session is rolled back when the request handler raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the attempt tables (and the in-progress unique index) if missing."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"Schema ready on {async_engine.url.get_backend_name()}")


async def dispose_db() -> None:
    await async_engine.dispose()
