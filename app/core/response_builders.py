from typing import Iterable, Optional
from app.models.quote_request import QuoteRequest
from app.models.quote import Quote
from app.models.shipment import Shipment
from app.models.tracking_event import TrackingEvent
from app.schemas.quote_request import QuoteRequestOut
from app.schemas.quote import QuoteOut
from app.schemas.shipment import ShipmentOut, ShipmentDetailOut, TrackingEventOut
from app.utils.dates import as_utc


def build_quote_request_response(request: QuoteRequest) -> QuoteRequestOut:
    return QuoteRequestOut(
        id=request.id,
        customer_id=request.customer_id,
        service_type=request.service_type,
        pickup_location=request.pickup_location,
        destinations=request.destinations or [],
        cargo_ready_date=request.cargo_ready_date,
        total_weight=request.total_weight,
        total_volume=request.total_volume,
        total_cartons=request.total_cartons,
        special_requirements=request.special_requirements,
        status=request.status,
        created_at=as_utc(request.created_at),
        updated_at=as_utc(request.updated_at),
    )


def build_quote_response(quote: Quote) -> QuoteOut:
    return QuoteOut(
        id=quote.id,
        request_id=quote.request_id,
        customer_id=quote.customer_id,
        staff_id=quote.staff_id,
        freight_cost=quote.freight_cost,
        insurance_cost=quote.insurance_cost,
        additional_charges=quote.additional_charges or [],
        discounts=quote.discounts or [],
        per_destination_rates=quote.per_destination_rates or [],
        commission_rate_per_kg=quote.commission_rate_per_kg,
        total_cost=quote.total_cost,
        cost_breakdown=quote.cost_breakdown or {},
        valid_until=as_utc(quote.valid_until),
        status=quote.status,
        notes=quote.notes,
        created_at=as_utc(quote.created_at),
        updated_at=as_utc(quote.updated_at),
    )


def build_tracking_event_response(event: TrackingEvent) -> TrackingEventOut:
    return TrackingEventOut(
        id=event.id,
        shipment_id=event.shipment_id,
        event_at=as_utc(event.event_at),
        status=event.status,
        location=event.location,
        description=event.description,
    )


def _shipment_fields(shipment: Shipment) -> dict:
    return dict(
        id=shipment.id,
        quote_id=shipment.quote_id,
        customer_id=shipment.customer_id,
        status=shipment.status,
        origin=shipment.origin,
        destinations=shipment.destinations or [],
        total_cartons=shipment.total_cartons,
        total_weight=shipment.total_weight,
        total_volume=shipment.total_volume,
        actual_weight=shipment.actual_weight,
        chargeable_weight=shipment.chargeable_weight,
        estimated_delivery=as_utc(shipment.estimated_delivery),
        created_at=as_utc(shipment.created_at),
        updated_at=as_utc(shipment.updated_at),
    )


def build_shipment_response(shipment: Shipment) -> ShipmentOut:
    return ShipmentOut(**_shipment_fields(shipment))


def build_shipment_detail_response(
    shipment: Shipment,
    events: Optional[Iterable[TrackingEvent]] = None,
) -> ShipmentDetailOut:
    return ShipmentDetailOut(
        **_shipment_fields(shipment),
        tracking_events=[build_tracking_event_response(e) for e in events or []],
    )


def build_quote_request_response_list(requests: list) -> list:
    return [build_quote_request_response(r) for r in requests]


def build_quote_response_list(quotes: list) -> list:
    return [build_quote_response(q) for q in quotes]


def build_shipment_response_list(shipments: list) -> list:
    return [build_shipment_response(s) for s in shipments]
