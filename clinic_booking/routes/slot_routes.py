from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from clinic_booking.auth.dependencies import require_admin
from clinic_booking.database import get_db
from clinic_booking.schemas import (
    CreateSlotRequest,
    SlotFilter,
    SlotRecord,
    SlotUpdate,
    SlotWithDoctorRecord,
    SuccessResponse,
)
from clinic_booking.services import slot_service

router = APIRouter(tags=['slots'])

# Static paths are registered before /{slot_id} so they are not read as ids.


@router.get('/available', response_model=list[SlotRecord])
def list_available_slots(db: Session = Depends(get_db)):
    return slot_service.list_available_slots(db)


@router.get('/search', response_model=list[SlotRecord])
def search_slots(
    doctor_id: int | None = Query(default=None),
    day: date | None = Query(default=None, alias='date'),
    only_available: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    filters = SlotFilter(doctor_id=doctor_id, day=day, only_available=only_available)
    return slot_service.list_slots(db, filters)


@router.get('/public', response_model=list[SlotWithDoctorRecord])
def list_public_slots(db: Session = Depends(get_db)):
    return slot_service.list_public_slots(db)


@router.get('/paginated/list', response_model=list[SlotRecord], dependencies=[Depends(require_admin)])
def list_paginated_slots(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=slot_service.MAX_PAGE_SIZE),
    sort: str = Query(default='start_time'),
    order: str = Query(default='asc', pattern='^(asc|desc)$'),
    db: Session = Depends(get_db),
):
    return slot_service.list_slots_page(db, page=page, limit=limit, sort=sort, order=order)


@router.get('', response_model=list[SlotRecord], dependencies=[Depends(require_admin)])
def list_slots(db: Session = Depends(get_db)):
    return slot_service.list_slots(db)


@router.post(
    '',
    response_model=SlotRecord,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_slot(data: CreateSlotRequest, db: Session = Depends(get_db)):
    return slot_service.create_slot(db, data.doctor_id, data.start_time, data.end_time)


@router.get('/{slot_id}', response_model=SlotRecord, dependencies=[Depends(require_admin)])
def get_slot(slot_id: int, db: Session = Depends(get_db)):
    return slot_service.get_slot(db, slot_id)


@router.put('/{slot_id}', response_model=SlotRecord, dependencies=[Depends(require_admin)])
def update_slot(slot_id: int, data: SlotUpdate, db: Session = Depends(get_db)):
    return slot_service.update_slot(db, slot_id, data)


@router.delete('/{slot_id}', response_model=SuccessResponse, dependencies=[Depends(require_admin)])
def delete_slot(slot_id: int, db: Session = Depends(get_db)):
    if not slot_service.delete_slot(db, slot_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Slot not found',
        )
    return SuccessResponse()
