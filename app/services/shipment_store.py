"""Shipments and their append-only tracking log."""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.auth_utils import CallerContext, authorize, scope_to_caller
from app.core.enums import Action
from app.core.errors import NotFoundError, ValidationError
from app.core.metrics import shipment_status_updates, track_db_operation, tracking_events_appended
from app.db.transaction import run_in_transaction
from app.models.shipment import Shipment
from app.models.tracking_event import TrackingEvent
from app.schemas.shipment import ShipmentCargoUpdate, ShipmentStatusUpdate, TrackingEventCreate
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


async def load_shipment(db: AsyncSession, shipment_id: str, for_update: bool = False) -> Shipment:
    q = select(Shipment).where(Shipment.id == shipment_id)
    if for_update:
        q = q.with_for_update()
    res = await db.execute(q)
    shipment = res.scalars().first()
    if shipment is None:
        raise NotFoundError("Shipment", shipment_id)
    return shipment


async def list_tracking_events(db: AsyncSession, shipment_id: str, newest_first: bool = True) -> list:
    if newest_first:
        order = (TrackingEvent.event_at.desc(), TrackingEvent.id.desc())
    else:
        order = (TrackingEvent.event_at.asc(), TrackingEvent.id.asc())
    res = await db.execute(
        select(TrackingEvent).where(TrackingEvent.shipment_id == shipment_id).order_by(*order)
    )
    return list(res.scalars().all())


async def _latest_event_at(db: AsyncSession, shipment_id: str) -> Optional[datetime]:
    res = await db.execute(
        select(func.max(TrackingEvent.event_at)).where(TrackingEvent.shipment_id == shipment_id)
    )
    return as_utc(res.scalar_one_or_none())


async def list_shipments(
    db: AsyncSession,
    caller: CallerContext,
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> list:
    q = scope_to_caller(select(Shipment), Shipment, caller)
    if status:
        q = q.where(Shipment.status == status)
    q = q.order_by(Shipment.created_at.desc(), Shipment.id.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_shipment(db: AsyncSession, shipment_id: str, caller: CallerContext) -> Tuple[Shipment, list]:
    shipment = await load_shipment(db, shipment_id)
    authorize(caller, Action.VIEW_SHIPMENT, shipment.customer_id, resource_name="shipment")
    events = await list_tracking_events(db, shipment_id)
    return shipment, events


@track_db_operation("append_tracking_event")
async def append_tracking_event(
    db: AsyncSession,
    shipment_id: str,
    payload: TrackingEventCreate,
    caller: CallerContext,
) -> TrackingEvent:
    authorize(caller, Action.APPEND_TRACKING_EVENT)
    if not payload.status.strip():
        raise ValidationError("status is required")

    async def _work() -> TrackingEvent:
        await load_shipment(db, shipment_id)
        event = TrackingEvent(
            shipment_id=shipment_id,
            event_at=as_utc(payload.event_at) or utcnow(),
            status=payload.status.strip(),
            location=payload.location,
            description=payload.description,
            created_by=caller.user_id,
        )
        db.add(event)
        await db.flush()
        return event

    event = await run_in_transaction(db, _work, operation="append tracking event")
    tracking_events_appended.labels(source="manual").inc()
    return event


@track_db_operation("update_shipment_status")
async def update_shipment_status(
    db: AsyncSession,
    shipment_id: str,
    payload: ShipmentStatusUpdate,
    caller: CallerContext,
) -> Tuple[Shipment, TrackingEvent]:
    """Change the shipment's stage and record it in the tracking log, atomically."""
    authorize(caller, Action.UPDATE_SHIPMENT_STATUS)
    status = payload.status.strip()
    if not status:
        raise ValidationError("status is required")

    async def _work() -> Tuple[Shipment, TrackingEvent]:
        shipment = await load_shipment(db, shipment_id, for_update=True)
        now = utcnow()
        latest = await _latest_event_at(db, shipment_id)
        # keep the log monotonic even if a manual event was back- or forward-dated
        event_at = max(now, latest) if latest else now

        shipment.status = status
        event = TrackingEvent(
            shipment_id=shipment_id,
            event_at=event_at,
            status=status,
            location=payload.location,
            description=payload.description or f"Status updated to {status}",
            created_by=caller.user_id,
        )
        db.add(event)
        await db.flush()
        return shipment, event

    shipment, event = await run_in_transaction(db, _work, operation="update shipment status")
    shipment_status_updates.labels(status=status).inc()
    tracking_events_appended.labels(source="status_update").inc()
    logger.info(f"Shipment {shipment_id} moved to '{status}' by user {caller.user_id}")
    return shipment, event


@track_db_operation("update_shipment_cargo")
async def update_shipment_cargo(
    db: AsyncSession,
    shipment_id: str,
    payload: ShipmentCargoUpdate,
    caller: CallerContext,
) -> Shipment:
    authorize(caller, Action.UPDATE_SHIPMENT_CARGO)
    if payload.actual_weight is None and payload.chargeable_weight is None:
        raise ValidationError("Provide actual_weight and/or chargeable_weight")

    async def _work() -> Shipment:
        shipment = await load_shipment(db, shipment_id, for_update=True)
        if payload.actual_weight is not None:
            shipment.actual_weight = payload.actual_weight
        if payload.chargeable_weight is not None:
            shipment.chargeable_weight = payload.chargeable_weight
        await db.flush()
        return shipment

    return await run_in_transaction(db, _work, operation="update shipment cargo")
