from app.models.base import Base
from app.models.user import User
from app.models.audit import Audit
from app.models.sequence import IdSequence
from app.models.quote_request import QuoteRequest
from app.models.quote import Quote
from app.models.shipment import Shipment
from app.models.tracking_event import TrackingEvent

__all__ = [
    "Base",
    "User",
    "Audit",
    "IdSequence",
    "QuoteRequest",
    "Quote",
    "Shipment",
    "TrackingEvent",
]
