import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from app.core.config import settings
from app.services.quote_store import expire_stale_quotes

logger = logging.getLogger(__name__)

engine_worker = create_async_engine(settings.DATABASE_URL, future=True, echo=False)
AsyncSessionWorker = sessionmaker(engine_worker, class_=AsyncSession, expire_on_commit=False)


async def expire_quotes_async(session_factory=None) -> int:
    """Background sweep moving quotes past their validity deadline to Expired"""
    session_factory = session_factory or AsyncSessionWorker
    async with session_factory() as db:
        expired = await expire_stale_quotes(db)
    logger.info(f"Quote expiry sweep finished, {expired} quotes expired")
    return expired
