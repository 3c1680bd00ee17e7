"""Audit trail of who called which mutating endpoint with what payload"""
import logging
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.audit import Audit
from app.core.enums import AuditAction
from app.core.metrics import audit_logs_created
from app.utils.hashing import payload_hash

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncSession,
    user_id: int,
    action: AuditAction,
    payload: Optional[Any] = None,
    resource_id: Optional[str] = None,
) -> None:
    """Stage an audit row in the caller's transaction; failures are logged only."""
    try:
        audit_record = Audit(
            user_id=int(user_id),
            action=str(action),
            resource_id=resource_id,
            payload_hash=payload_hash(payload),
        )
        db.add(audit_record)
        await db.flush()
        audit_logs_created.labels(action=str(action)).inc()
    except SQLAlchemyError as e:
        logger.error(f"Audit logging failed for action {action}: {e}", exc_info=True)
        await db.rollback()
