from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.models.base import BaseModel


class TrackingEvent(BaseModel):
    __tablename__ = "tracking_events"

    shipment_id = Column(ForeignKey("shipments.id"), nullable=False, index=True)
    shipment = relationship("Shipment", backref="tracking_events")

    event_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(50), nullable=False)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_by = Column(ForeignKey("users.id"), nullable=True)
