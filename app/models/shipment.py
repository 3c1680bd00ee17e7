from sqlalchemy import Column, String, Float, Integer, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.models.base import Base, TimestampMixin
from app.core.enums import ShipmentStage


class Shipment(TimestampMixin, Base):
    __tablename__ = "shipments"

    id = Column(String(20), primary_key=True)
    # unique: a quote converts into at most one shipment
    quote_id = Column(ForeignKey("quotes.id"), nullable=False, unique=True)
    customer_id = Column(ForeignKey("users.id"), nullable=False, index=True)

    quote = relationship("Quote", backref="shipment")

    status = Column(String(50), nullable=False, default=ShipmentStage.BOOKING_CONFIRMED)
    origin = Column(String(255), nullable=False)
    destinations = Column(JSON, nullable=False)

    total_cartons = Column(Integer, nullable=True)
    total_weight = Column(Float, nullable=True)
    total_volume = Column(Float, nullable=True)
    actual_weight = Column(Float, nullable=True)
    chargeable_weight = Column(Float, nullable=True)

    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
