from datetime import datetime, time, timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_booking import database
from clinic_booking.auth.dependencies import require_admin
from clinic_booking.core.clock import utcnow
from clinic_booking.database import get_db
from clinic_booking.models.booking import Booking
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot

router = APIRouter(tags=['admin'])


class StatsResponse(BaseModel):
    total_doctors: int
    total_slots: int
    available_slots: int
    total_bookings: int
    todays_bookings: int


class DatabaseHealthResponse(BaseModel):
    db: str
    pool: str


@router.get('/health/db', response_model=DatabaseHealthResponse)
def database_health():
    return DatabaseHealthResponse(
        db='ok' if database.ping() else 'error',
        pool=database.pool_status(),
    )


@router.get('/stats', response_model=StatsResponse, dependencies=[Depends(require_admin)])
def get_stats(db: Session = Depends(get_db)):
    today_start = datetime.combine(utcnow().date(), time.min)

    def count(query) -> int:
        return db.execute(query).scalar_one()

    return StatsResponse(
        total_doctors=count(select(func.count(Doctor.id))),
        total_slots=count(select(func.count(Slot.id))),
        available_slots=count(select(func.count(Slot.id)).where(Slot.is_booked.is_(False))),
        total_bookings=count(select(func.count(Booking.id))),
        todays_bookings=count(
            select(func.count(Booking.id)).where(
                Booking.created_at >= today_start,
                Booking.created_at < today_start + timedelta(days=1),
            )
        ),
    )
