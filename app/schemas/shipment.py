from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from app.schemas.quote import QuoteOut
from app.schemas.quote_request import DestinationSplit


class TrackingEventCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str = Field(min_length=1, max_length=50)
    location: Optional[str] = None
    description: Optional[str] = None
    event_at: Optional[datetime] = None


class ShipmentStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str = Field(min_length=1, max_length=50)
    location: Optional[str] = None
    description: Optional[str] = None


class ShipmentCargoUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actual_weight: Optional[float] = Field(default=None, ge=0)
    chargeable_weight: Optional[float] = Field(default=None, ge=0)


class TrackingEventOut(BaseModel):
    id: int
    shipment_id: str
    event_at: datetime
    status: str
    location: Optional[str] = None
    description: Optional[str] = None


class ShipmentOut(BaseModel):
    id: str
    quote_id: str
    customer_id: int
    status: str
    origin: str
    destinations: List[DestinationSplit]
    total_cartons: Optional[int] = None
    total_weight: Optional[float] = None
    total_volume: Optional[float] = None
    actual_weight: Optional[float] = None
    chargeable_weight: Optional[float] = None
    estimated_delivery: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ShipmentDetailOut(ShipmentOut):
    tracking_events: List[TrackingEventOut] = []


class ConversionOut(BaseModel):
    quote: QuoteOut
    shipment: ShipmentOut
