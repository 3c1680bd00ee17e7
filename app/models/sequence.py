from sqlalchemy import Column, String, BigInteger
from app.models.base import Base, TimestampMixin


class IdSequence(TimestampMixin, Base):
    """One counter row per entity kind. Only ever advanced by an atomic upsert."""
    __tablename__ = "id_sequences"

    kind = Column(String(32), primary_key=True)
    current_value = Column(BigInteger, nullable=False, default=0)
