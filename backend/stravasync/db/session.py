"""
Database Session Management

Provides the async engine, session factory and the Store wired to the
Strava collections.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker

from stravasync.config import settings
from stravasync.models import Base, _get_strava_models
from stravasync.shared.sql_store import SqlAlchemyStore


def _get_async_url(url: str) -> str:
    """Convert sync database URL to async version."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    elif url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    return url


def make_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for a sync-style or async-style database URL."""
    async_url = _get_async_url(database_url)

    if async_url.startswith("sqlite"):
        return create_async_engine(
            async_url,
            connect_args={"check_same_thread": False}
        )
    elif async_url.startswith("postgresql"):
        # PostgreSQL with connection pool settings
        return create_async_engine(
            async_url,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,  # 30 minutes
        )
    return create_async_engine(async_url)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


def make_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyStore:
    """Build a Store serving the Strava collections."""
    StravaCredential, StravaActivity = _get_strava_models()
    return SqlAlchemyStore(session_factory, {
        StravaCredential.__tablename__: StravaCredential,
        StravaActivity.__tablename__: StravaActivity,
    })


async def init_db(engine: AsyncEngine) -> None:
    """Create tables for all registered models."""
    # Import models to register them with Base.metadata
    _get_strava_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Default engine and session factory from settings
async_engine = make_engine(settings.database_url)
AsyncSessionLocal = make_session_factory(async_engine)
