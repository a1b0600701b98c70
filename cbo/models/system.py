from sqlalchemy import Column, String, Integer, DateTime, func
from cbo.db.base import Base


class NumberSequence(Base):
    """Named counter for human-readable numbers (member numbers, per-year loan numbers)."""
    __tablename__ = "number_sequence"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
