from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import date, datetime
from app.core.enums import QuoteRequestStatus


class DestinationSplit(BaseModel):
    warehouse: str
    address: Optional[str] = None
    cartons: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    volume: Optional[float] = Field(default=None, ge=0)


class QuoteRequestCreate(BaseModel):
    service_type: str = "Air Freight"
    pickup_location: str
    destinations: List[DestinationSplit]
    cargo_ready_date: date
    total_weight: Optional[float] = Field(default=None, ge=0)
    total_volume: Optional[float] = Field(default=None, ge=0)
    total_cartons: Optional[int] = Field(default=None, ge=0)
    special_requirements: Optional[str] = None


class QuoteRequestStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: QuoteRequestStatus


class QuoteRequestOut(BaseModel):
    id: str
    customer_id: int
    service_type: str
    pickup_location: str
    destinations: List[DestinationSplit]
    cargo_ready_date: date
    total_weight: Optional[float] = None
    total_volume: Optional[float] = None
    total_cartons: Optional[int] = None
    special_requirements: Optional[str] = None
    status: QuoteRequestStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
