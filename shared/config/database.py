import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from ..errors import StoreUnavailable
from ..models.base import Base
from .settings import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.database_url)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session() as session:
        yield session


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def store_errors(operation: str, session: Optional[AsyncSession] = None, **context):
    """Report store access failures as StoreUnavailable.

    Integrity violations pass through untouched; callers map them to the
    business error they represent. When ``session`` is given it is rolled
    back on failure so it stays usable for the next write.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.error(f"Store failure during {operation} ({context}): {e}")
        if session is not None:
            try:
                await session.rollback()
            except SQLAlchemyError as rollback_error:
                logger.error(f"Rollback after {operation} failed: {rollback_error}")
        raise StoreUnavailable(operation, **context) from e
