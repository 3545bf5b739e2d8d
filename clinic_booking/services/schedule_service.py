import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from clinic_booking.core import errors
from clinic_booking.database import transaction
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot
from clinic_booking.schemas import SlotRecord

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


def build_schedule_windows(
    day: date,
    start_hour: int,
    end_hour: int,
    duration_minutes: int,
) -> list[tuple[datetime, datetime]]:
    """Cut ``[day+start_hour, day+end_hour)`` into back-to-back slots.

    A trailing remainder shorter than ``duration_minutes`` is dropped, so no
    slot ever runs past ``end_hour``.
    """
    if duration_minutes <= 0:
        raise errors.ValidationError('Duration must be a positive number of minutes.')
    if not 0 <= start_hour < end_hour <= HOURS_PER_DAY:
        raise errors.ValidationError('Hours must satisfy 0 <= startHour < endHour <= 24.')

    midnight = datetime.combine(day, time.min)
    window_start = midnight + timedelta(hours=start_hour)
    window_end = midnight + timedelta(hours=end_hour)
    step = timedelta(minutes=duration_minutes)

    windows: list[tuple[datetime, datetime]] = []
    cursor = window_start
    while cursor + step <= window_end:
        windows.append((cursor, cursor + step))
        cursor += step

    return windows


def generate_schedule(
    db: Session,
    doctor_id: int,
    day: date,
    start_hour: int,
    end_hour: int,
    duration_minutes: int,
) -> list[SlotRecord]:
    windows = build_schedule_windows(day, start_hour, end_hour, duration_minutes)
    if not windows:
        raise errors.ValidationError('The time window is shorter than a single slot.')

    with transaction(db):
        if db.get(Doctor, doctor_id) is None:
            raise errors.DoctorNotFound()

        slots = [
            Slot(doctor_id=doctor_id, start_time=start_time, end_time=end_time, is_booked=False)
            for start_time, end_time in windows
        ]
        db.add_all(slots)
        db.flush()
        records = [SlotRecord.model_validate(slot) for slot in slots]

    logger.info('Generated %d slot(s) for doctor %s on %s', len(records), doctor_id, day.isoformat())
    return records
