import logging
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from healthsync.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def database_url(db_path: str) -> str:
    """SQLite URL for the local store; ':memory:' is passed through."""
    return f"sqlite+aiosqlite:///{db_path}"


# Health samples, preferences and sync logs all live in one SQLite file
engine = create_async_engine(
    database_url(settings.db_path),
    echo=settings.debug,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the database directory and all tables."""
    # Register models on Base before create_all
    import healthsync.models  # noqa: F401

    if settings.db_path != ":memory:":
        Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready at {settings.db_path}")
