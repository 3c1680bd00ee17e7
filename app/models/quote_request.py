from sqlalchemy import Column, String, Float, Integer, Date, Text, JSON, ForeignKey, Enum
from sqlalchemy.orm import relationship
from app.models.base import Base, TimestampMixin
from app.core.enums import QuoteRequestStatus


class QuoteRequest(TimestampMixin, Base):
    __tablename__ = "quote_requests"

    id = Column(String(20), primary_key=True)
    customer_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    customer = relationship("User", backref="quote_requests")

    service_type = Column(String(50), nullable=False, default="Air Freight")
    pickup_location = Column(String(255), nullable=False)
    destinations = Column(JSON, nullable=False)
    cargo_ready_date = Column(Date, nullable=False)
    total_weight = Column(Float, nullable=True)
    total_volume = Column(Float, nullable=True)
    total_cartons = Column(Integer, nullable=True)
    special_requirements = Column(Text, nullable=True)

    status = Column(Enum(QuoteRequestStatus), default=QuoteRequestStatus.AWAITING_QUOTE, nullable=False)
