import logging
from collections.abc import AsyncGenerator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from huddle.config import settings
from huddle.core.exceptions import DataStoreError

logger = logging.getLogger(__name__)

_engine_options: dict[str, object] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
if settings.DATABASE_URL.startswith("postgresql"):
    _engine_options.update(pool_size=10, max_overflow=20)

engine = create_async_engine(settings.DATABASE_URL, **_engine_options)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def commit_or_raise(db: AsyncSession, action: str) -> None:
    """Commit, rolling back on failure.

    IntegrityError is re-raised untouched so callers can map constraint
    violations to domain errors; anything else becomes a DataStoreError.
    """
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"❌ Failed to {action}: {e}")
        raise DataStoreError(action, e) from e
