from sqlalchemy import Column, String, Float, Text, JSON, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from app.models.base import Base, TimestampMixin
from app.core.enums import QuoteStatus


class Quote(TimestampMixin, Base):
    __tablename__ = "quotes"
    __table_args__ = (
        # at most one accepted quote per request
        Index(
            "uq_quotes_accepted_request",
            "request_id",
            unique=True,
            postgresql_where=text("status = 'ACCEPTED'"),
            sqlite_where=text("status = 'ACCEPTED'"),
        ),
    )

    id = Column(String(20), primary_key=True)
    request_id = Column(ForeignKey("quote_requests.id"), nullable=False, index=True)
    customer_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    staff_id = Column(ForeignKey("users.id"), nullable=False)

    request = relationship("QuoteRequest", backref="quotes")

    freight_cost = Column(Float, nullable=False)
    insurance_cost = Column(Float, nullable=False, default=0.0)
    additional_charges = Column(JSON, nullable=True)
    discounts = Column(JSON, nullable=True)
    per_destination_rates = Column(JSON, nullable=True)
    commission_rate_per_kg = Column(Float, nullable=True)
    total_cost = Column(Float, nullable=False)
    cost_breakdown = Column(JSON, nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    status = Column(Enum(QuoteStatus), default=QuoteStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
