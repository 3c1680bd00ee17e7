from typing import Optional
from app.schemas.quote import QuoteCreate, QuoteCost, DestinationRate
from app.models.quote_request import QuoteRequest


def _destination_weight(rate: DestinationRate, request: QuoteRequest) -> float:
    if rate.weight is not None:
        return rate.weight
    for dest in request.destinations or []:
        if dest.get("warehouse") == rate.warehouse and dest.get("weight") is not None:
            return float(dest["weight"])
    return 0.0


def price_destinations(payload: QuoteCreate, request: QuoteRequest) -> list:
    priced = []
    for rate in payload.per_destination_rates:
        weight = _destination_weight(rate, request)
        priced.append(rate.model_copy(update={
            "weight": weight,
            "cost": round(weight * rate.rate_per_kg, 2),
        }))
    return priced


def calculate_quote_cost(
    payload: QuoteCreate,
    request: QuoteRequest,
    commission_rate_per_kg: Optional[float] = None,
) -> QuoteCost:
    destinations = price_destinations(payload, request)
    breakdown = {
        "freight_cost": payload.freight_cost,
        "insurance_cost": payload.insurance_cost,
        "destination_costs": round(sum(d.cost for d in destinations), 2),
        "additional_charges": round(sum(c.amount for c in payload.additional_charges), 2),
        "discounts": round(sum(d.amount for d in payload.discounts), 2),
    }
    total = (
        breakdown["freight_cost"]
        + breakdown["insurance_cost"]
        + breakdown["destination_costs"]
        + breakdown["additional_charges"]
        - breakdown["discounts"]
    )
    if payload.total_cost is not None:
        total = payload.total_cost

    # commission is tracked against the quote, it is not billed to the customer
    if commission_rate_per_kg is not None and request.total_weight:
        breakdown["commission"] = round(commission_rate_per_kg * request.total_weight, 2)

    return QuoteCost(total_cost=round(max(total, 0.0), 2), cost_breakdown=breakdown)
