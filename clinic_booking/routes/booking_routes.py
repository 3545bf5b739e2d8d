from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from clinic_booking.auth.dependencies import require_admin
from clinic_booking.database import get_db
from clinic_booking.schemas import (
    BookingDetailRecord,
    BookingRecord,
    CreateBookingRequest,
    ExpireResponse,
    SuccessResponse,
)
from clinic_booking.services import booking_service

router = APIRouter(tags=['bookings'])


@router.post('', response_model=BookingRecord)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    return booking_service.create_booking(db, data.slot_id, data.user_name, data.user_email)


@router.get('', response_model=list[BookingDetailRecord], dependencies=[Depends(require_admin)])
def list_bookings(db: Session = Depends(get_db)):
    return booking_service.list_bookings(db)


@router.get('/user/{user_name}', response_model=list[BookingDetailRecord])
def list_user_bookings(user_name: str, db: Session = Depends(get_db)):
    return booking_service.list_bookings_for_user(db, user_name)


@router.post('/expire', response_model=ExpireResponse, dependencies=[Depends(require_admin)])
def expire_bookings(
    threshold_minutes: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    expired = booking_service.expire_stale_bookings(db, threshold_minutes)
    return ExpireResponse(expired=len(expired), bookings=expired)


@router.post('/{booking_id}/confirm', response_model=BookingRecord, dependencies=[Depends(require_admin)])
def confirm_booking(booking_id: int, db: Session = Depends(get_db)):
    return booking_service.confirm_booking(db, booking_id)


@router.delete('/{booking_id}', response_model=SuccessResponse, dependencies=[Depends(require_admin)])
def cancel_booking(booking_id: int, db: Session = Depends(get_db)):
    if not booking_service.cancel_booking(db, booking_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found',
        )
    return SuccessResponse()
