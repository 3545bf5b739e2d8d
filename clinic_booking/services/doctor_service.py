import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from clinic_booking.core import errors
from clinic_booking.database import transaction
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot
from clinic_booking.schemas import CreateDoctorRequest, DoctorRecord, DoctorUpdate

logger = logging.getLogger(__name__)


def list_doctors(db: Session) -> list[DoctorRecord]:
    doctors = db.execute(select(Doctor).order_by(Doctor.id.asc())).scalars().all()
    return [DoctorRecord.model_validate(doctor) for doctor in doctors]


def get_doctor(db: Session, doctor_id: int) -> DoctorRecord:
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        raise errors.DoctorNotFound()
    return DoctorRecord.model_validate(doctor)


def create_doctor(db: Session, data: CreateDoctorRequest) -> DoctorRecord:
    with transaction(db):
        doctor = Doctor(name=data.name, specialization=data.specialization, bio=data.bio)
        db.add(doctor)
        db.flush()
        record = DoctorRecord.model_validate(doctor)

    logger.info('Created doctor %s', record.id)
    return record


def update_doctor(db: Session, doctor_id: int, changes: DoctorUpdate) -> DoctorRecord:
    values = changes.model_dump(exclude_unset=True)
    # name and specialization are NOT NULL; only bio may be cleared.
    values = {key: value for key, value in values.items() if value is not None or key == 'bio'}
    if not values:
        raise errors.ValidationError('No doctor fields to update.')

    with transaction(db):
        doctor = db.get(Doctor, doctor_id)
        if doctor is None:
            raise errors.DoctorNotFound()

        for field_name, value in values.items():
            setattr(doctor, field_name, value)

        db.flush()
        record = DoctorRecord.model_validate(doctor)

    return record


def delete_doctor(db: Session, doctor_id: int) -> bool:
    """Delete a doctor together with all of their slots.

    Bookings on those slots are not removed; their slot and doctor references
    are nulled, leaving them orphaned.
    """
    with transaction(db):
        doctor = db.get(Doctor, doctor_id)
        if doctor is None:
            return False

        removed = db.execute(
            delete(Slot).where(Slot.doctor_id == doctor_id).execution_options(synchronize_session=False)
        ).rowcount
        db.delete(doctor)

    logger.info('Deleted doctor %s and %d slot(s)', doctor_id, removed)
    return True
