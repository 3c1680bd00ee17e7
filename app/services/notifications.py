import httpx
import asyncio
import logging
import time
from typing import Optional
from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.core.config import settings
from app.core.metrics import notification_deliveries, notification_duration
from app.models.user import User

logger = logging.getLogger(__name__)

QUOTE_REQUESTED = "quote-requested"
QUOTE_READY = "quote-ready"
SHIPMENT_UPDATE = "shipment-update"
SHIPMENT_DELIVERED = "shipment-delivered"


async def recipient_for(db: AsyncSession, user_id: int) -> Optional[str]:
    """Resolve the address a user's notifications go to: email, else username."""
    res = await db.execute(select(User.email, User.username).where(User.id == user_id))
    row = res.first()
    if row is None:
        return None
    return row.email or row.username


async def queue_notification(
    background_tasks: BackgroundTasks,
    db: AsyncSession,
    user_id: int,
    template_id: str,
    variables: dict,
) -> None:
    """Schedule a notification to a user once the response has been sent.

    Runs after the route committed its write, so a failed recipient lookup is
    logged and the notification dropped.
    """
    try:
        recipient = await recipient_for(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Notification '{template_id}' dropped: recipient lookup for user {user_id} failed: {e}")
        notification_deliveries.labels(template=template_id, status="skipped").inc()
        await db.rollback()
        return
    background_tasks.add_task(send_notification, recipient, template_id, variables)


async def send_notification(
    recipient: Optional[str],
    template_id: str,
    variables: dict,
    retries: Optional[int] = None,
) -> bool:
    """Deliver a templated notification. Failures are logged, never raised."""
    if not settings.NOTIFICATION_URL:
        logger.debug(f"Notification '{template_id}' skipped: no NOTIFICATION_URL configured")
        notification_deliveries.labels(template=template_id, status="skipped").inc()
        return False
    if not recipient:
        logger.warning(f"Notification '{template_id}' skipped: no recipient")
        notification_deliveries.labels(template=template_id, status="skipped").inc()
        return False

    if retries is None:
        retries = settings.NOTIFICATION_RETRIES

    payload = {"recipient": recipient, "templateId": template_id, "variables": variables}
    backoff = settings.NOTIFICATION_BACKOFF_SECONDS
    start = time.time()

    for attempt in range(1, retries + 1):
        try:
            async with httpx.AsyncClient(timeout=settings.NOTIFICATION_TIMEOUT) as client:
                response = await client.post(settings.NOTIFICATION_URL, json=payload)

                if 200 <= response.status_code < 300:
                    logger.info(f"Notification '{template_id}' delivered to {recipient}")
                    notification_deliveries.labels(template=template_id, status="success").inc()
                    notification_duration.labels(status="success").observe(time.time() - start)
                    return True
                else:
                    logger.warning(
                        f"Notification delivery failed (attempt {attempt}/{retries}): "
                        f"Status {response.status_code} for '{template_id}' to {recipient}"
                    )
        except httpx.TimeoutException:
            logger.warning(
                f"Notification timeout (attempt {attempt}/{retries}) for '{template_id}' to {recipient}"
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Notification delivery error (attempt {attempt}/{retries}): {e} "
                f"for '{template_id}' to {recipient}"
            )

        if attempt < retries:
            await asyncio.sleep(backoff)
            backoff *= 2.0

    logger.error(f"Notification '{template_id}' to {recipient} failed after {retries} attempts")
    notification_deliveries.labels(template=template_id, status="failure").inc()
    notification_duration.labels(status="failure").observe(time.time() - start)
    return False
