import logging
from datetime import datetime, time, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from clinic_booking.core import errors
from clinic_booking.database import transaction
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot
from clinic_booking.schemas import SlotFilter, SlotRecord, SlotUpdate, SlotWithDoctorRecord

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
SORTABLE_COLUMNS = {
    'start_time': Slot.start_time,
    'end_time': Slot.end_time,
    'doctor_id': Slot.doctor_id,
}


def validate_slot_window(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise errors.ValidationError('Slot end time must be after its start time.')


def _require_doctor(db: Session, doctor_id: int) -> None:
    if db.get(Doctor, doctor_id) is None:
        raise errors.ValidationError(f'Doctor {doctor_id} does not exist.')


def create_slot(db: Session, doctor_id: int, start_time: datetime, end_time: datetime) -> SlotRecord:
    validate_slot_window(start_time, end_time)

    with transaction(db):
        _require_doctor(db, doctor_id)
        slot = Slot(doctor_id=doctor_id, start_time=start_time, end_time=end_time, is_booked=False)
        db.add(slot)
        db.flush()
        record = SlotRecord.model_validate(slot)

    logger.info('Created slot %s for doctor %s', record.id, doctor_id)
    return record


def get_slot(db: Session, slot_id: int) -> SlotRecord:
    slot = db.get(Slot, slot_id)
    if slot is None:
        raise errors.SlotNotFound()
    return SlotRecord.model_validate(slot)


def list_slots(db: Session, filters: SlotFilter | None = None) -> list[SlotRecord]:
    filters = filters or SlotFilter()
    query = select(Slot)

    if filters.doctor_id is not None:
        query = query.where(Slot.doctor_id == filters.doctor_id)

    if filters.day is not None:
        day_start = datetime.combine(filters.day, time.min)
        query = query.where(
            Slot.start_time >= day_start,
            Slot.start_time < day_start + timedelta(days=1),
        )

    if filters.only_available:
        query = query.where(Slot.is_booked.is_(False))

    slots = db.execute(query.order_by(Slot.start_time.asc(), Slot.id.asc())).scalars().all()
    return [SlotRecord.model_validate(slot) for slot in slots]


def list_available_slots(db: Session) -> list[SlotRecord]:
    return list_slots(db, SlotFilter(only_available=True))


def list_public_slots(db: Session) -> list[SlotWithDoctorRecord]:
    rows = db.execute(
        select(Slot, Doctor.name)
        .join(Doctor, Doctor.id == Slot.doctor_id, isouter=True)
        .order_by(Slot.start_time.asc(), Slot.id.asc())
    ).all()

    return [
        SlotWithDoctorRecord(
            **SlotRecord.model_validate(slot).model_dump(),
            doctor_name=doctor_name,
        )
        for slot, doctor_name in rows
    ]


def list_slots_page(
    db: Session,
    page: int = 1,
    limit: int = 10,
    sort: str = 'start_time',
    order: str = 'asc',
) -> list[SlotRecord]:
    if page < 1:
        raise errors.ValidationError('Page must be 1 or greater.')
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise errors.ValidationError(f'Limit must be between 1 and {MAX_PAGE_SIZE}.')

    column = SORTABLE_COLUMNS.get(sort, Slot.start_time)
    ordering = column.desc() if order == 'desc' else column.asc()

    slots = db.execute(
        select(Slot)
        .order_by(ordering, Slot.id.asc())
        .limit(limit)
        .offset((page - 1) * limit)
    ).scalars().all()
    return [SlotRecord.model_validate(slot) for slot in slots]


def update_slot(db: Session, slot_id: int, changes: SlotUpdate) -> SlotRecord:
    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise errors.ValidationError('No slot fields to update.')

    with transaction(db):
        slot = db.execute(select(Slot).where(Slot.id == slot_id).with_for_update()).scalar_one_or_none()
        if slot is None:
            raise errors.SlotNotFound()
        if slot.is_booked:
            raise errors.ConflictError('Booked slots cannot be changed.')

        validate_slot_window(
            values.get('start_time', slot.start_time),
            values.get('end_time', slot.end_time),
        )
        if 'doctor_id' in values:
            _require_doctor(db, values['doctor_id'])

        for field_name, value in values.items():
            setattr(slot, field_name, value)

        db.flush()
        record = SlotRecord.model_validate(slot)

    return record


def reserve_atomically(db: Session, slot_id: int) -> SlotRecord | None:
    """Flip a free slot to booked with a single conditional UPDATE.

    Runs in the caller's transaction and does not commit. Returns the updated
    slot, or ``None`` when the slot was already booked or does not exist; the
    caller tells those apart with its own locked read.
    """
    result = db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.is_booked.is_(False))
        .values(is_booked=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None

    slot = db.get(Slot, slot_id, populate_existing=True)
    return SlotRecord.model_validate(slot)


def delete_slot(db: Session, slot_id: int) -> bool:
    """Hard delete. Bookings on the slot are kept with their slot reference nulled."""
    with transaction(db):
        slot = db.get(Slot, slot_id)
        if slot is None:
            return False
        db.delete(slot)

    logger.info('Deleted slot %s', slot_id)
    return True
