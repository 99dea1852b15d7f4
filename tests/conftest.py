"""Shared test fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from training_load_server.models.base import Base

TEST_USER_ID = "athlete-001"


@pytest.fixture
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncIterator[AsyncSession]:
    """Create async session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def user_id() -> str:
    return TEST_USER_ID


@pytest.fixture
def today():
    return datetime.now(UTC).date()


# =============================================================================
# Training Data Fixtures
# =============================================================================


@pytest.fixture
async def athlete_42d(async_session: AsyncSession, user_id: str):
    """Athlete with 42 days of steady 50 TSS rides ending yesterday."""
    from tests.fixtures.training_seed import seed_steady_training

    end = datetime.now(UTC).date() - timedelta(days=1)
    count = await seed_steady_training(async_session, user_id, end=end, days=42, tss=50.0)
    return user_id, count


@pytest.fixture
async def athlete_mixed_intensity(async_session: AsyncSession, user_id: str):
    """Athlete with six weeks of mostly easy training and weekly intervals."""
    from tests.fixtures.training_seed import seed_mixed_intensity

    end = datetime.now(UTC).date() - timedelta(days=1)
    count = await seed_mixed_intensity(async_session, user_id, end=end, weeks=6)
    return user_id, count
