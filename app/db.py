import asyncio
from typing import AsyncIterator

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)

# SQLAlchemy Base for models
Base = declarative_base()

# UUID primary and foreign keys, stored as text on SQLite
GUID = UUID(as_uuid=False).with_variant(String(36), "sqlite")


def _engine_options(url: str) -> dict:
    options = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    # SQLite (tests, local runs) does not use a sized pool
    if not url.startswith("sqlite"):
        options.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request"""
    async with AsyncSessionLocal() as session:
        yield session


async def check_database_connection() -> bool:
    """Check if database connection is healthy"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def connect_with_retry(max_retries: int = 3, delay: float = 1.0):
    """Connect to database with retry logic"""
    for attempt in range(max_retries):
        if await check_database_connection():
            logger.info("Database connected successfully")
            return True
        logger.warning(f"Database connection attempt {attempt + 1} failed")
        if attempt < max_retries - 1:
            await asyncio.sleep(delay)
    logger.error("Failed to connect to database after all retries")
    raise ConnectionError("Database unavailable")
