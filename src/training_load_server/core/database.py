"""Database initialization and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from training_load_server.core.config import settings

logger = structlog.get_logger()


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the database engine.

    Args:
        database_url: Override for settings.database_url

    Returns:
        Async SQLAlchemy engine
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,
    )


# Global engine and session maker
engine = create_engine()
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_database(db_engine: AsyncEngine | None = None) -> None:
    """Verify the database is reachable and migrations have been applied.

    Does NOT create tables; use Alembic migrations for schema management.
    Non-PostgreSQL engines (tests, local sqlite) are only checked for
    connectivity.
    """
    db_engine = db_engine or engine
    async with db_engine.connect() as conn:
        if db_engine.dialect.name != "postgresql":
            await conn.execute(text("SELECT 1"))
            logger.info("Database reachable", dialect=db_engine.dialect.name)
            return

        result = await conn.execute(
            text(
                "SELECT EXISTS ("
                "SELECT FROM information_schema.tables "
                "WHERE table_name = 'alembic_version'"
                ")"
            )
        )
        has_migrations = result.scalar()

        if not has_migrations:
            logger.warning(
                "Database migrations have not been applied. "
                "Run 'alembic upgrade head' to initialize the database schema."
            )
        else:
            result = await conn.execute(text("SELECT version_num FROM alembic_version"))
            version = result.scalar()
            logger.info("Database initialized", migration_version=version)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Usage:
        async with get_session() as session:
            result = await session.execute(select(Activity))
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_database(db_engine: AsyncEngine | None = None) -> None:
    """Close database connection pool."""
    await (db_engine or engine).dispose()
