"""Quote acceptance and its conversion into a shipment.

``accept_quote`` is the only write path that spans more than one aggregate.
Within a single unit of work it:

1. loads the quote together with its request, row-locked where the store
   supports ``SELECT ... FOR UPDATE``;
2. checks the caller is staff/admin or the owning customer;
3. checks the quote is still Pending or Finalized, still valid, and that no
   other quote for the same request was accepted;
4. moves the quote to Accepted with a conditional update that repeats the
   status check, and marks the request Quote Accepted;
5. allocates a shipment identifier;
6. inserts the shipment, copying route and cargo from the request;
7. appends the seed "Booking Confirmed" tracking event.

Steps 4-7 commit together or not at all. When two callers race on the same
quote, the loser's conditional update matches no row and it receives an
``InvalidTransitionError``; no second shipment is written.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.auth_utils import CallerContext, authorize
from app.core.config import settings
from app.core.enums import (
    Action,
    EntityKind,
    QuoteRequestStatus,
    QuoteStatus,
    ShipmentStage,
    CONVERTIBLE_QUOTE_STATUSES,
)
from app.core.errors import FreightError, InvalidTransitionError, NotFoundError
from app.core.metrics import conversion_failures, quotes_converted, tracking_events_appended
from app.db.transaction import run_in_transaction
from app.models.quote import Quote
from app.models.quote_request import QuoteRequest
from app.models.shipment import Shipment
from app.models.tracking_event import TrackingEvent
from app.services.sequencer import allocate_identifier
from app.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

SEED_EVENT_DESCRIPTION = "Shipment booking has been confirmed"


@dataclass
class ConversionResult:
    quote: Quote
    request: QuoteRequest
    shipment: Shipment
    tracking_event: TrackingEvent


def _check_convertible(quote: Quote, now: datetime) -> None:
    if quote.status == QuoteStatus.ACCEPTED:
        raise InvalidTransitionError(f"Quote {quote.id} has already been accepted")
    if quote.status not in CONVERTIBLE_QUOTE_STATUSES:
        raise InvalidTransitionError(f"Quote {quote.id} is {quote.status} and cannot be accepted")
    valid_until = as_utc(quote.valid_until)
    if valid_until is not None and valid_until < now:
        raise InvalidTransitionError(f"Quote {quote.id} expired on {valid_until.isoformat()}")


async def _sibling_accepted(db: AsyncSession, quote: Quote) -> bool:
    res = await db.execute(
        select(func.count(Quote.id)).where(
            Quote.request_id == quote.request_id,
            Quote.id != quote.id,
            Quote.status == QuoteStatus.ACCEPTED,
        )
    )
    return res.scalar_one() > 0


async def accept_quote(db: AsyncSession, quote_id: str, caller: CallerContext) -> ConversionResult:
    async def _convert() -> ConversionResult:
        res = await db.execute(
            select(Quote, QuoteRequest)
            .join(QuoteRequest, Quote.request_id == QuoteRequest.id)
            .where(Quote.id == quote_id)
            .with_for_update()
        )
        row = res.first()
        if row is None:
            raise NotFoundError("Quote", quote_id)
        quote, request = row

        authorize(caller, Action.ACCEPT_QUOTE, quote.customer_id, resource_name="quote")

        now = utcnow()
        _check_convertible(quote, now)
        if await _sibling_accepted(db, quote):
            raise InvalidTransitionError(f"Another quote for request {request.id} has already been accepted")

        accepted = await db.execute(
            update(Quote)
            .where(Quote.id == quote_id, Quote.status.in_(CONVERTIBLE_QUOTE_STATUSES))
            .values(status=QuoteStatus.ACCEPTED, updated_at=now)
        )
        if accepted.rowcount != 1:
            raise InvalidTransitionError(f"Quote {quote_id} has already been processed")
        request.status = QuoteRequestStatus.QUOTE_ACCEPTED

        shipment_id = await allocate_identifier(db, EntityKind.SHIPMENT)
        shipment = Shipment(
            id=shipment_id,
            quote_id=quote.id,
            customer_id=quote.customer_id,
            status=ShipmentStage.BOOKING_CONFIRMED,
            origin=request.pickup_location,
            destinations=request.destinations,
            total_cartons=request.total_cartons,
            total_weight=request.total_weight,
            total_volume=request.total_volume,
            estimated_delivery=now + timedelta(days=settings.ESTIMATED_DELIVERY_DAYS),
        )
        db.add(shipment)
        await db.flush()

        event = TrackingEvent(
            shipment_id=shipment.id,
            event_at=now,
            status=ShipmentStage.BOOKING_CONFIRMED,
            location=request.pickup_location,
            description=SEED_EVENT_DESCRIPTION,
            created_by=caller.user_id,
        )
        db.add(event)
        await db.flush()
        await db.refresh(quote)
        return ConversionResult(quote=quote, request=request, shipment=shipment, tracking_event=event)

    try:
        result = await run_in_transaction(db, _convert, operation=f"accept quote {quote_id}")
    except FreightError as exc:
        conversion_failures.labels(reason=exc.code).inc()
        logger.warning(f"Accepting quote {quote_id} by user {caller.user_id} failed: {exc.message}")
        raise

    quotes_converted.inc()
    tracking_events_appended.labels(source="conversion").inc()
    logger.info(f"Quote {quote_id} accepted, shipment {result.shipment.id} created")
    return result
