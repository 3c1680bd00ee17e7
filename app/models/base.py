from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from app.utils.dates import utcnow

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)


class BaseModel(TimestampMixin, Base):
    __abstract__ = True
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
