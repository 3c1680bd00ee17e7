"""Quote requests, quotes and quote acceptance"""
from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from app.db.session import get_db
from app.core.auth_utils import CallerContext
from app.core.security import get_caller
from app.core.audit_decorator import audit_log
from app.core.rate_limit import check_rate_limit
from app.core.enums import AuditAction, QuoteRequestStatus, QuoteStatus
from app.core.response_builders import (
    build_quote_request_response,
    build_quote_request_response_list,
    build_quote_response,
    build_quote_response_list,
    build_shipment_response,
)
from app.schemas.quote import QuoteCreate, QuoteOut, QuoteStatusUpdate
from app.schemas.quote_request import QuoteRequestCreate, QuoteRequestOut, QuoteRequestStatusUpdate
from app.schemas.shipment import ConversionOut
from app.services import quote_store
from app.services.conversion import ConversionResult, accept_quote
from app.services.notifications import (
    QUOTE_READY,
    QUOTE_REQUESTED,
    SHIPMENT_UPDATE,
    queue_notification,
)
from app.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/quotes", tags=["quotes"])


async def _notify_conversion(db: AsyncSession, conversion: ConversionResult, background_tasks: BackgroundTasks):
    await queue_notification(
        background_tasks,
        db,
        conversion.shipment.customer_id,
        SHIPMENT_UPDATE,
        {
            "shipment_id": conversion.shipment.id,
            "quote_id": conversion.quote.id,
            "status": conversion.shipment.status,
        },
    )


# Quote requests. Declared before /{quote_id} so "requests" is not taken for a quote id.

@router.post("/requests", response_model=QuoteRequestOut, status_code=201)
@audit_log(AuditAction.CREATE_QUOTE_REQUEST)
async def create_quote_request(
    payload: QuoteRequestCreate,
    background_tasks: BackgroundTasks,
    idempotency_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)

    cache_key = f"{caller.user_id}:{idempotency_key}" if idempotency_key else None
    if cache_key:
        prev = await get_idempotent(cache_key)
        if prev:
            return prev

    request = await quote_store.create_quote_request(db, payload, caller)
    out = build_quote_request_response(request)

    if cache_key:
        await set_idempotent(cache_key, out.model_dump(mode="json"))

    await queue_notification(
        background_tasks,
        db,
        caller.user_id,
        QUOTE_REQUESTED,
        {"request_id": request.id, "pickup_location": request.pickup_location},
    )
    return out


@router.get("/requests", response_model=List[QuoteRequestOut])
async def list_quote_requests(
    status: Optional[QuoteRequestStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    requests = await quote_store.list_quote_requests(db, caller, status=status, limit=limit, offset=offset)
    return build_quote_request_response_list(requests)


@router.get("/requests/{request_id}", response_model=QuoteRequestOut)
async def get_quote_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    request = await quote_store.get_quote_request(db, request_id, caller)
    return build_quote_request_response(request)


@router.patch("/requests/{request_id}/status", response_model=QuoteRequestOut)
@audit_log(AuditAction.UPDATE_QUOTE_REQUEST_STATUS)
async def update_quote_request_status(
    request_id: str,
    payload: QuoteRequestStatusUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    request = await quote_store.update_quote_request_status(db, request_id, payload.status, caller)
    return build_quote_request_response(request)


# Quotes

@router.post("", response_model=QuoteOut, status_code=201)
@audit_log(AuditAction.CREATE_QUOTE)
async def create_quote(
    payload: QuoteCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    quote = await quote_store.create_quote(db, payload, caller)
    out = build_quote_response(quote)

    await queue_notification(
        background_tasks,
        db,
        quote.customer_id,
        QUOTE_READY,
        {
            "quote_id": quote.id,
            "request_id": quote.request_id,
            "total_cost": quote.total_cost,
            "valid_until": out.valid_until.isoformat(),
        },
    )
    return out


@router.get("", response_model=List[QuoteOut])
async def list_quotes(
    status: Optional[QuoteStatus] = Query(None),
    request_id: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    quotes = await quote_store.list_quotes(
        db, caller, status=status, request_id=request_id, limit=limit, offset=offset
    )
    return build_quote_response_list(quotes)


@router.get("/{quote_id}", response_model=QuoteOut)
async def get_quote(
    quote_id: str,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    quote = await quote_store.get_quote(db, quote_id, caller)
    return build_quote_response(quote)


@router.patch("/{quote_id}/status", response_model=QuoteOut)
@audit_log(AuditAction.UPDATE_QUOTE_STATUS)
async def update_quote_status(
    quote_id: str,
    payload: QuoteStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    change = await quote_store.update_quote_status(db, quote_id, payload.status, caller)
    out = build_quote_response(change.quote)
    if change.conversion is not None:
        await _notify_conversion(db, change.conversion, background_tasks)
    return out


@router.post("/{quote_id}/accept", response_model=ConversionOut)
@audit_log(AuditAction.ACCEPT_QUOTE)
async def accept(
    quote_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
):
    await check_rate_limit(caller.user_id)
    conversion = await accept_quote(db, quote_id, caller)
    out = ConversionOut(
        quote=build_quote_response(conversion.quote),
        shipment=build_shipment_response(conversion.shipment),
    )
    await _notify_conversion(db, conversion, background_tasks)
    return out
