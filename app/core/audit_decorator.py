import logging
from functools import wraps
from typing import Callable
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.audit_log import log_audit
from app.core.enums import AuditAction

logger = logging.getLogger(__name__)

RESOURCE_ID_PARAMS = ("shipment_id", "quote_id", "request_id")


def audit_log(action: AuditAction) -> Callable:
    """Record an audit row after the wrapped route succeeded.

    The route has already committed its own unit of work, so the audit row is
    written in a transaction of its own and can never undo the route's result.
    Routes must name their session ``db`` and their caller ``caller``.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            db: AsyncSession = kwargs.get("db")
            caller = kwargs.get("caller")

            if not db or not caller:
                return result

            payload = None
            for key in ["payload", "data", "body"]:
                if key in kwargs:
                    payload = kwargs[key]
                    break

            resource_id = next((kwargs[k] for k in RESOURCE_ID_PARAMS if kwargs.get(k)), None)
            if resource_id is None:
                resource_id = getattr(result, "id", None)

            await log_audit(
                db,
                caller.user_id,
                action,
                payload,
                resource_id=str(resource_id) if resource_id is not None else None,
            )
            try:
                await db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Audit commit failed for {action}: {e}")
                await db.rollback()

            return result

        return wrapper
    return decorator
