"""Slot model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer

from clinic_booking.database import Base


class Slot(Base):
    """A fixed interval of a doctor's time that can be booked at most once."""
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_slots_end_after_start"),
        Index("idx_slots_doctor_start", "doctor_id", "start_time"),
        Index("idx_slots_booked_start", "is_booked", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
