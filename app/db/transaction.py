"""Unit-of-work runner shared by every multi-row write path."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import FreightError, TransactionFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    operation: str,
    timeout: Optional[float] = None,
) -> T:
    """Run ``work`` and commit it as one unit, or roll all of it back.

    Domain errors propagate unchanged. Database errors and timeouts surface
    as a retryable ``TransactionFailure``; nothing from a failed unit is ever
    committed.
    """
    if timeout is None:
        timeout = settings.TRANSACTION_TIMEOUT_SECONDS

    async def _unit() -> T:
        result = await work()
        await db.commit()
        return result

    try:
        return await asyncio.wait_for(_unit(), timeout=timeout)
    except FreightError:
        await db.rollback()
        raise
    except asyncio.TimeoutError as exc:
        await _safe_rollback(db, operation)
        logger.error(f"{operation} timed out after {timeout}s, rolled back")
        raise TransactionFailure(f"{operation} did not complete in time, please retry") from exc
    except SQLAlchemyError as exc:
        await _safe_rollback(db, operation)
        logger.error(f"{operation} failed and was rolled back: {exc}", exc_info=True)
        raise TransactionFailure(f"{operation} could not be committed, please retry") from exc


async def _safe_rollback(db: AsyncSession, operation: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as exc:
        # connection is already gone; the server discards the open transaction
        logger.warning(f"Rollback after failed {operation} raised: {exc}")
