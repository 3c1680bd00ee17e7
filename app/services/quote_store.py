"""Quote requests and the quotes staff issue against them.

Acceptance is not handled here: a quote moving to Accepted always goes
through ``app.services.conversion.accept_quote`` so that its shipment is
created in the same unit of work.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.auth_utils import CallerContext, authorize, scope_to_caller
from app.core.config import settings
from app.core.enums import (
    Action,
    EntityKind,
    QuoteRequestStatus,
    QuoteStatus,
    CONVERTIBLE_QUOTE_STATUSES,
)
from app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.core.metrics import track_db_operation
from app.db.transaction import run_in_transaction
from app.models.quote import Quote
from app.models.quote_request import QuoteRequest
from app.schemas.quote import QuoteCreate
from app.schemas.quote_request import QuoteRequestCreate
from app.services.conversion import ConversionResult, accept_quote
from app.services.pricing import calculate_quote_cost, price_destinations
from app.services.sequencer import allocate_identifier
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class QuoteStatusChange:
    quote: Quote
    conversion: Optional[ConversionResult] = None


async def load_quote_request(db: AsyncSession, request_id: str, for_update: bool = False) -> QuoteRequest:
    q = select(QuoteRequest).where(QuoteRequest.id == request_id)
    if for_update:
        q = q.with_for_update()
    res = await db.execute(q)
    request = res.scalars().first()
    if request is None:
        raise NotFoundError("Quote request", request_id)
    return request


async def load_quote(db: AsyncSession, quote_id: str, for_update: bool = False) -> Quote:
    q = select(Quote).where(Quote.id == quote_id)
    if for_update:
        q = q.with_for_update()
    res = await db.execute(q)
    quote = res.scalars().first()
    if quote is None:
        raise NotFoundError("Quote", quote_id)
    return quote


def _cargo_totals(payload: QuoteRequestCreate) -> dict:
    """Fill in whichever cargo totals the customer left out from the destination splits."""
    def _sum(field):
        values = [getattr(d, field) for d in payload.destinations if getattr(d, field) is not None]
        return sum(values) if values else None

    return {
        "total_weight": payload.total_weight if payload.total_weight is not None else _sum("weight"),
        "total_volume": payload.total_volume if payload.total_volume is not None else _sum("volume"),
        "total_cartons": payload.total_cartons if payload.total_cartons is not None else _sum("cartons"),
    }


@track_db_operation("create_quote_request")
async def create_quote_request(
    db: AsyncSession,
    payload: QuoteRequestCreate,
    caller: CallerContext,
) -> QuoteRequest:
    authorize(caller, Action.CREATE_QUOTE_REQUEST)

    if not payload.pickup_location.strip():
        raise ValidationError("pickup_location is required")
    if not payload.destinations:
        raise ValidationError("At least one destination is required")

    async def _work() -> QuoteRequest:
        request_id = await allocate_identifier(db, EntityKind.QUOTE_REQUEST)
        request = QuoteRequest(
            id=request_id,
            customer_id=caller.user_id,
            service_type=payload.service_type,
            pickup_location=payload.pickup_location.strip(),
            destinations=[d.model_dump(mode="json") for d in payload.destinations],
            cargo_ready_date=payload.cargo_ready_date,
            special_requirements=payload.special_requirements,
            status=QuoteRequestStatus.AWAITING_QUOTE,
            **_cargo_totals(payload),
        )
        db.add(request)
        await db.flush()
        return request

    request = await run_in_transaction(db, _work, operation="create quote request")
    logger.info(f"Quote request {request.id} created by user {caller.user_id}")
    return request


async def list_quote_requests(
    db: AsyncSession,
    caller: CallerContext,
    status: Optional[QuoteRequestStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> list:
    q = scope_to_caller(select(QuoteRequest), QuoteRequest, caller)
    if status:
        q = q.where(QuoteRequest.status == status)
    q = q.order_by(QuoteRequest.created_at.desc(), QuoteRequest.id.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_quote_request(db: AsyncSession, request_id: str, caller: CallerContext) -> QuoteRequest:
    request = await load_quote_request(db, request_id)
    authorize(caller, Action.VIEW_QUOTE_REQUEST, request.customer_id, resource_name="quote request")
    return request


@track_db_operation("update_quote_request_status")
async def update_quote_request_status(
    db: AsyncSession,
    request_id: str,
    status: QuoteRequestStatus,
    caller: CallerContext,
) -> QuoteRequest:
    authorize(caller, Action.SET_QUOTE_REQUEST_STATUS)

    if status == QuoteRequestStatus.QUOTE_ACCEPTED:
        raise InvalidTransitionError("A quote request is only marked accepted by accepting one of its quotes")

    async def _work() -> QuoteRequest:
        request = await load_quote_request(db, request_id, for_update=True)
        if request.status == QuoteRequestStatus.QUOTE_ACCEPTED:
            raise InvalidTransitionError(f"Quote request {request_id} has already been converted")
        request.status = status
        await db.flush()
        return request

    return await run_in_transaction(db, _work, operation="update quote request status")


async def _mark_request_rejected(db: AsyncSession, request_id: str) -> None:
    # only once no other quote on the request can still be accepted
    res = await db.execute(
        select(func.count(Quote.id)).where(
            Quote.request_id == request_id,
            Quote.status.in_(CONVERTIBLE_QUOTE_STATUSES),
        )
    )
    if res.scalar_one() > 0:
        return
    await db.execute(
        update(QuoteRequest)
        .where(QuoteRequest.id == request_id, QuoteRequest.status == QuoteRequestStatus.QUOTED)
        .values(status=QuoteRequestStatus.QUOTE_REJECTED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


async def _has_accepted_quote(db: AsyncSession, request_id: str) -> bool:
    res = await db.execute(
        select(func.count(Quote.id)).where(
            Quote.request_id == request_id,
            Quote.status == QuoteStatus.ACCEPTED,
        )
    )
    return res.scalar_one() > 0


def _validity_deadline(valid_until: Optional[datetime]) -> datetime:
    now = utcnow()
    if valid_until is None:
        return now + timedelta(days=settings.QUOTE_VALIDITY_DAYS)
    deadline = as_utc(valid_until)
    if deadline <= now:
        raise ValidationError("valid_until must be in the future")
    return deadline


@track_db_operation("create_quote")
async def create_quote(db: AsyncSession, payload: QuoteCreate, caller: CallerContext) -> Quote:
    authorize(caller, Action.CREATE_QUOTE)
    valid_until = _validity_deadline(payload.valid_until)
    commission_rate = (
        payload.commission_rate_per_kg
        if payload.commission_rate_per_kg is not None
        else settings.DEFAULT_COMMISSION_RATE_PER_KG
    )

    async def _work() -> Quote:
        request = await load_quote_request(db, payload.request_id, for_update=True)
        if request.status == QuoteRequestStatus.QUOTE_ACCEPTED or await _has_accepted_quote(db, request.id):
            raise InvalidTransitionError(f"Quote request {request.id} already has an accepted quote")

        cost = calculate_quote_cost(payload, request, commission_rate)
        quote_id = await allocate_identifier(db, EntityKind.QUOTE)
        quote = Quote(
            id=quote_id,
            request_id=request.id,
            customer_id=request.customer_id,
            staff_id=caller.user_id,
            freight_cost=payload.freight_cost,
            insurance_cost=payload.insurance_cost,
            additional_charges=[c.model_dump(mode="json") for c in payload.additional_charges],
            discounts=[d.model_dump(mode="json") for d in payload.discounts],
            per_destination_rates=[r.model_dump(mode="json") for r in price_destinations(payload, request)],
            commission_rate_per_kg=commission_rate,
            total_cost=cost.total_cost,
            cost_breakdown=cost.cost_breakdown,
            valid_until=valid_until,
            status=QuoteStatus.PENDING,
            notes=payload.notes,
        )
        db.add(quote)
        request.status = QuoteRequestStatus.QUOTED
        await db.flush()
        return quote

    quote = await run_in_transaction(db, _work, operation="create quote")
    logger.info(f"Quote {quote.id} issued for request {quote.request_id} by staff {caller.user_id}")
    return quote


async def list_quotes(
    db: AsyncSession,
    caller: CallerContext,
    status: Optional[QuoteStatus] = None,
    request_id: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> list:
    q = scope_to_caller(select(Quote), Quote, caller)
    if status:
        q = q.where(Quote.status == status)
    if request_id:
        q = q.where(Quote.request_id == request_id)
    q = q.order_by(Quote.created_at.desc(), Quote.id.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_quote(db: AsyncSession, quote_id: str, caller: CallerContext) -> Quote:
    quote = await load_quote(db, quote_id)
    authorize(caller, Action.VIEW_QUOTE, quote.customer_id, resource_name="quote")
    return quote


@track_db_operation("update_quote_status")
async def update_quote_status(
    db: AsyncSession,
    quote_id: str,
    status: QuoteStatus,
    caller: CallerContext,
) -> QuoteStatusChange:
    quote = await load_quote(db, quote_id)
    authorize(caller, Action.SET_QUOTE_STATUS, quote.customer_id, target_status=status, resource_name="quote")

    if status == QuoteStatus.ACCEPTED:
        conversion = await accept_quote(db, quote_id, caller)
        return QuoteStatusChange(quote=conversion.quote, conversion=conversion)

    if quote.status == QuoteStatus.ACCEPTED:
        raise InvalidTransitionError(f"Quote {quote_id} has been accepted and can no longer change status")

    async def _work() -> Quote:
        # re-check in the write itself so a concurrent acceptance cannot be overwritten
        res = await db.execute(
            update(Quote)
            .where(Quote.id == quote_id, Quote.status != QuoteStatus.ACCEPTED)
            .values(status=status, updated_at=utcnow())
        )
        if res.rowcount != 1:
            raise InvalidTransitionError(f"Quote {quote_id} has been accepted and can no longer change status")
        if status == QuoteStatus.REJECTED:
            await _mark_request_rejected(db, quote.request_id)
        await db.refresh(quote)
        return quote

    quote = await run_in_transaction(db, _work, operation="update quote status")
    logger.info(f"Quote {quote_id} set to {status} by user {caller.user_id}")
    return QuoteStatusChange(quote=quote)


async def expire_stale_quotes(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Mark quotes whose validity deadline has passed as Expired."""
    now = as_utc(now) or utcnow()

    async def _work() -> int:
        res = await db.execute(
            update(Quote)
            .where(
                Quote.status.in_(CONVERTIBLE_QUOTE_STATUSES),
                Quote.valid_until < now,
            )
            .values(status=QuoteStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount or 0

    expired = await run_in_transaction(db, _work, operation="expire stale quotes")
    if expired:
        logger.info(f"Expired {expired} stale quotes")
    return expired
