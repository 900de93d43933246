import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config.settings import settings
from src.database.base import Base
from src.shared.utils import LOG_LEVEL, get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set in environment variables.")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite pools are per-file; pool sizing does not apply
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,  # Number of permanent connections
        "max_overflow": settings.DB_MAX_OVERFLOW,  # Additional connections that can be created
        "pool_timeout": settings.DB_POOL_TIMEOUT,  # Seconds to wait for connection from pool
        "pool_recycle": settings.DB_POOL_RECYCLE,  # Recycle connections after N seconds
        "pool_pre_ping": True,  # Validate connections before using them
    }


engine = create_async_engine(
    DATABASE_URL,
    echo=LOG_LEVEL == logging.DEBUG,
    **_engine_options(DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    engine, expire_on_commit=False, class_=AsyncSession
)


async def init_models():
    """Create the payment and order tables if they do not exist yet."""
    import src.database.models  # noqa: F401  registers every mapper

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified")


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
