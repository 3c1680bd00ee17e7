from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from app.models.base import BaseModel


class Audit(BaseModel):
    """Who performed which mutating action, on what, with which payload (hashed)."""
    __tablename__ = "audits"

    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", backref="audit_logs")

    action = Column(String(64), nullable=False, index=True)
    resource_id = Column(String(32), nullable=True, index=True)
    payload_hash = Column(String(128), nullable=False)
