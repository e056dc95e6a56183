# -*- coding: utf-8 -*-
"""
Shared test fixtures.
"""

import os

# must be set before attempt_engine reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("EXPIRED_SWEEP_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)
from sqlalchemy.pool import StaticPool

from attempt_engine.clients.database_client import get_db
from attempt_engine.domain.models import Base
from attempt_engine.engine.clock import ManualClock
from attempt_engine.main import app
from attempt_engine.service.cache_service import CacheService
from tests.fixtures import OTHER_STUDENT_ID, STUDENT_ID, auth_headers

# In-memory test database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    """Manual clock starting at 2024-01-01 12:00 UTC."""
    return ManualClock()


@pytest.fixture
def no_cache():
    return CacheService(enabled=False)


@pytest.fixture
def override_get_db(session_factory):
    """Override get_db: one session per request, like production."""

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    return _get_db


@pytest.fixture
async def client(override_get_db):
    """Async API client running the app in-process."""
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def student_headers():
    return auth_headers(STUDENT_ID)


@pytest.fixture
def other_student_headers():
    return auth_headers(OTHER_STUDENT_ID)
