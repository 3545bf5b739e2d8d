"""Doctor model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from clinic_booking.core.clock import utcnow
from clinic_booking.database import Base


class Doctor(Base):
    """A practitioner whose time is offered as bookable slots."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    specialization = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
