from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from app.db.session import get_db
from app.core.auth_utils import CallerContext
from app.core.security import get_caller
from app.core.audit_decorator import audit_log
from app.core.rate_limit import check_rate_limit
from app.core.enums import AuditAction, ShipmentStage
from app.core.response_builders import (
    build_shipment_detail_response,
    build_shipment_response,
    build_shipment_response_list,
    build_tracking_event_response,
)
from app.schemas.shipment import (
    ShipmentCargoUpdate,
    ShipmentDetailOut,
    ShipmentOut,
    ShipmentStatusUpdate,
    TrackingEventCreate,
    TrackingEventOut,
)
from app.services import shipment_store
from app.services.notifications import SHIPMENT_DELIVERED, SHIPMENT_UPDATE, queue_notification

router = APIRouter(prefix="/shipments", tags=["shipments"])


@router.get("", response_model=List[ShipmentOut])
async def list_shipments(
    status: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    shipments = await shipment_store.list_shipments(db, caller, status=status, limit=limit, offset=offset)
    return build_shipment_response_list(shipments)


@router.get("/{shipment_id}", response_model=ShipmentDetailOut)
async def get_shipment(
    shipment_id: str,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    shipment, events = await shipment_store.get_shipment(db, shipment_id, caller)
    return build_shipment_detail_response(shipment, events)


@router.patch("/{shipment_id}/status", response_model=ShipmentOut)
@audit_log(AuditAction.UPDATE_SHIPMENT_STATUS)
async def update_shipment_status(
    shipment_id: str,
    payload: ShipmentStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    shipment, event = await shipment_store.update_shipment_status(db, shipment_id, payload, caller)
    out = build_shipment_response(shipment)

    template = SHIPMENT_DELIVERED if shipment.status == ShipmentStage.DELIVERED else SHIPMENT_UPDATE
    await queue_notification(
        background_tasks,
        db,
        shipment.customer_id,
        template,
        {
            "shipment_id": shipment.id,
            "status": shipment.status,
            "location": event.location,
            "description": event.description,
        },
    )
    return out


@router.patch("/{shipment_id}/weights", response_model=ShipmentOut)
@audit_log(AuditAction.UPDATE_SHIPMENT_WEIGHTS)
async def update_shipment_weights(
    shipment_id: str,
    payload: ShipmentCargoUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    shipment = await shipment_store.update_shipment_cargo(db, shipment_id, payload, caller)
    return build_shipment_response(shipment)


@router.post("/{shipment_id}/tracking", response_model=TrackingEventOut, status_code=201)
@audit_log(AuditAction.ADD_TRACKING_EVENT)
async def add_tracking_event(
    shipment_id: str,
    payload: TrackingEventCreate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    event = await shipment_store.append_tracking_event(db, shipment_id, payload, caller)
    return build_tracking_event_response(event)
