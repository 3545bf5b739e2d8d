from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from clinic_booking.auth.dependencies import require_admin
from clinic_booking.database import get_db
from clinic_booking.schemas import (
    CreateDoctorRequest,
    DoctorRecord,
    DoctorUpdate,
    ScheduleRequest,
    ScheduleResponse,
    SuccessResponse,
)
from clinic_booking.services import doctor_service, schedule_service

router = APIRouter(tags=['doctors'])


@router.get('', response_model=list[DoctorRecord])
def list_doctors(db: Session = Depends(get_db)):
    return doctor_service.list_doctors(db)


@router.get('/{doctor_id}', response_model=DoctorRecord)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    return doctor_service.get_doctor(db, doctor_id)


@router.post(
    '',
    response_model=DoctorRecord,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_doctor(data: CreateDoctorRequest, db: Session = Depends(get_db)):
    return doctor_service.create_doctor(db, data)


@router.put('/{doctor_id}', response_model=DoctorRecord, dependencies=[Depends(require_admin)])
def update_doctor(doctor_id: int, data: DoctorUpdate, db: Session = Depends(get_db)):
    return doctor_service.update_doctor(db, doctor_id, data)


@router.delete('/{doctor_id}', response_model=SuccessResponse, dependencies=[Depends(require_admin)])
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    if not doctor_service.delete_doctor(db, doctor_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found',
        )
    return SuccessResponse()


@router.post('/{doctor_id}/schedule', response_model=ScheduleResponse, dependencies=[Depends(require_admin)])
def create_doctor_schedule(doctor_id: int, data: ScheduleRequest, db: Session = Depends(get_db)):
    slots = schedule_service.generate_schedule(
        db,
        doctor_id,
        data.date,
        data.start_hour,
        data.end_hour,
        data.duration_minutes,
    )
    return ScheduleResponse(created=len(slots), slots=slots)
