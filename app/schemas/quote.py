from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from app.core.enums import QuoteStatus


class Charge(BaseModel):
    description: str
    amount: float = Field(ge=0)


class DestinationRate(BaseModel):
    warehouse: str
    rate_per_kg: float = Field(ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    cartons: Optional[int] = Field(default=None, ge=0)
    cost: Optional[float] = None


class QuoteCreate(BaseModel):
    request_id: str
    freight_cost: float = Field(ge=0)
    insurance_cost: float = Field(default=0.0, ge=0)
    additional_charges: List[Charge] = []
    discounts: List[Charge] = []
    per_destination_rates: List[DestinationRate] = []
    commission_rate_per_kg: Optional[float] = Field(default=None, ge=0)
    total_cost: Optional[float] = Field(default=None, ge=0)
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None


class QuoteStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: QuoteStatus


class QuoteCost(BaseModel):
    total_cost: float
    cost_breakdown: dict


class QuoteOut(BaseModel):
    id: str
    request_id: str
    customer_id: int
    staff_id: int
    freight_cost: float
    insurance_cost: float
    additional_charges: List[Charge] = []
    discounts: List[Charge] = []
    per_destination_rates: List[DestinationRate] = []
    commission_rate_per_kg: Optional[float] = None
    total_cost: float
    cost_breakdown: dict = {}
    valid_until: datetime
    status: QuoteStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
