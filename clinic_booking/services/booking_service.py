"""Booking lifecycle: reserve-then-record, cancellation, confirmation, expiry.

All mutual exclusion is left to the database. ``create_booking`` takes a row
lock on the slot before looking at ``is_booked``, so concurrent requests for
the same slot queue on that lock and every one after the winner sees the slot
as taken.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from clinic_booking.core import config, errors
from clinic_booking.core.clock import utcnow
from clinic_booking.database import transaction
from clinic_booking.models.booking import Booking, BookingStatus
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot
from clinic_booking.schemas import BookingDetailRecord, BookingRecord
from clinic_booking.services.slot_service import reserve_atomically

logger = logging.getLogger(__name__)


def _initial_status() -> str:
    status = config.BOOKING_INITIAL_STATUS
    if status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
        raise errors.StoreError()
    return status


def create_booking(
    db: Session,
    slot_id: int,
    user_name: str,
    user_email: str | None = None,
) -> BookingRecord:
    with transaction(db):
        slot = db.execute(
            select(Slot).where(Slot.id == slot_id).with_for_update()
        ).scalar_one_or_none()

        if slot is None:
            raise errors.SlotNotFound()

        if slot.is_booked:
            logger.info('Rejected booking for slot %s: already booked', slot_id)
            raise errors.SlotAlreadyBooked()

        booking = Booking(
            slot_id=slot.id,
            doctor_id=slot.doctor_id,
            user_name=user_name,
            user_email=user_email,
            status=_initial_status(),
        )
        db.add(booking)
        db.flush()

        if reserve_atomically(db, slot_id) is None:
            raise errors.SlotAlreadyBooked()

        record = BookingRecord.model_validate(booking)

    logger.info('Booking %s %s for slot %s', record.id, record.status, slot_id)
    return record


def _detail_query():
    return (
        select(Booking, Slot.start_time, Slot.end_time, Doctor.name)
        .join(Slot, Slot.id == Booking.slot_id, isouter=True)
        .join(Doctor, Doctor.id == Slot.doctor_id, isouter=True)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )


def _to_detail(row) -> BookingDetailRecord:
    booking, start_time, end_time, doctor_name = row
    return BookingDetailRecord(
        **BookingRecord.model_validate(booking).model_dump(),
        start_time=start_time,
        end_time=end_time,
        doctor_name=doctor_name,
    )


def list_bookings(db: Session) -> list[BookingDetailRecord]:
    return [_to_detail(row) for row in db.execute(_detail_query()).all()]


def list_bookings_for_user(db: Session, user_name: str) -> list[BookingDetailRecord]:
    normalized = user_name.strip().lower()
    if not normalized:
        raise errors.ValidationError('User name is required.')

    query = _detail_query().where(func.lower(Booking.user_name) == normalized)
    return [_to_detail(row) for row in db.execute(query).all()]


def _release_slots(db: Session, slot_ids: set[int]) -> None:
    """Mark slots free again unless another live booking still holds them."""
    if not slot_ids:
        return

    still_held = select(Booking.slot_id).where(
        Booking.slot_id.in_(slot_ids),
        Booking.status != BookingStatus.FAILED.value,
    )
    db.execute(
        update(Slot)
        .where(Slot.id.in_(slot_ids), Slot.id.not_in(still_held))
        .values(is_booked=False)
        .execution_options(synchronize_session=False)
    )


def cancel_booking(db: Session, booking_id: int) -> bool:
    """Delete a booking.

    With ``CANCELLATION_POLICY=retain`` the slot stays booked and is effectively
    retired; with ``release`` it becomes bookable again.
    """
    with transaction(db):
        booking = db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        ).scalar_one_or_none()

        if booking is None:
            return False

        slot_id = booking.slot_id
        db.delete(booking)
        db.flush()

        if config.CANCELLATION_POLICY == 'release' and slot_id is not None:
            _release_slots(db, {slot_id})

    logger.info('Cancelled booking %s (slot %s, policy=%s)', booking_id, slot_id, config.CANCELLATION_POLICY)
    return True


def confirm_booking(db: Session, booking_id: int) -> BookingRecord:
    with transaction(db):
        booking = db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        ).scalar_one_or_none()

        if booking is None:
            raise errors.BookingNotFound()

        if booking.status != BookingStatus.PENDING.value:
            raise errors.ConflictError(f'Booking is {booking.status}, only PENDING bookings can be confirmed.')

        booking.status = BookingStatus.CONFIRMED.value
        db.flush()
        record = BookingRecord.model_validate(booking)

    logger.info('Confirmed booking %s', booking_id)
    return record


def expire_stale_bookings(
    db: Session,
    threshold_minutes: int | None = None,
    now: datetime | None = None,
) -> list[BookingRecord]:
    """Fail PENDING bookings older than the threshold and free their slots.

    Only rows still PENDING are touched, so a second run over the same data
    changes nothing.
    """
    if threshold_minutes is None:
        threshold_minutes = config.PENDING_BOOKING_TIMEOUT_MINUTES
    if threshold_minutes < 0:
        raise errors.ValidationError('Threshold minutes cannot be negative.')

    cutoff = (now or utcnow()) - timedelta(minutes=threshold_minutes)

    with transaction(db):
        stale = db.execute(
            select(Booking)
            .where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.created_at < cutoff,
            )
            .order_by(Booking.id.asc())
            .with_for_update()
        ).scalars().all()

        for booking in stale:
            booking.status = BookingStatus.FAILED.value
        db.flush()

        _release_slots(db, {booking.slot_id for booking in stale if booking.slot_id is not None})
        records = [BookingRecord.model_validate(booking) for booking in stale]

    if records:
        logger.info('Expired %d stale pending booking(s)', len(records))
    return records
