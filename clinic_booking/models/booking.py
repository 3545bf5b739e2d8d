"""Booking model definitions."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from clinic_booking.core.clock import utcnow
from clinic_booking.database import Base


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class Booking(Base):
    """A requester's claim on a slot.

    Bookings outlive the slot and doctor they point at: deleting either one
    nulls the reference instead of removing the booking.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="SET NULL"), nullable=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)
    user_name = Column(String(255), nullable=False)
    user_email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)
