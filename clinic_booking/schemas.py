"""Request bodies and the typed records every service returns."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from clinic_booking.core.clock import as_naive_utc

MAX_NAME_LENGTH = 255


def _require_text(value: str, field_name: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{field_name} is required.')
    if len(normalized) > MAX_NAME_LENGTH:
        raise ValueError(f'{field_name} must be {MAX_NAME_LENGTH} characters or fewer.')
    return normalized


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class DoctorRecord(BaseModel):
    id: int
    name: str
    specialization: str
    bio: str | None = None

    class Config:
        from_attributes = True


class SlotRecord(BaseModel):
    id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool

    class Config:
        from_attributes = True


class SlotWithDoctorRecord(SlotRecord):
    doctor_name: str | None = None


class BookingRecord(BaseModel):
    id: int
    slot_id: int | None = None
    doctor_id: int | None = None
    user_name: str
    user_email: str | None = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class BookingDetailRecord(BookingRecord):
    start_time: datetime | None = None
    end_time: datetime | None = None
    doctor_name: str | None = None


class SlotFilter(BaseModel):
    doctor_id: int | None = None
    day: date | None = None
    only_available: bool = False


class CreateDoctorRequest(BaseModel):
    name: str
    specialization: str
    bio: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _require_text(value, 'Name')

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str) -> str:
        return _require_text(value, 'Specialization')

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        return _optional_text(value)


class DoctorUpdate(BaseModel):
    """Columns an administrator may change on a doctor; anything else is ignored."""

    name: str | None = None
    specialization: str | None = None
    bio: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else _require_text(value, 'Name')

    @field_validator('specialization')
    @classmethod
    def validate_specialization(cls, value: str | None) -> str | None:
        return None if value is None else _require_text(value, 'Specialization')

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        return _optional_text(value)


class CreateSlotRequest(BaseModel):
    doctor_id: int
    start_time: datetime
    end_time: datetime

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return as_naive_utc(value)


class SlotUpdate(BaseModel):
    """Columns an administrator may change on a slot.

    ``is_booked`` is not updatable here; only the booking transaction changes it.
    """

    doctor_id: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_naive_utc(value)


class CreateBookingRequest(BaseModel):
    slot_id: int
    user_name: str
    user_email: str | None = None

    @field_validator('user_name')
    @classmethod
    def validate_user_name(cls, value: str) -> str:
        return _require_text(value, 'User name')

    @field_validator('user_email')
    @classmethod
    def validate_user_email(cls, value: str | None) -> str | None:
        normalized = _optional_text(value)
        if normalized is None:
            return None
        normalized = normalized.lower()
        if '@' not in normalized:
            raise ValueError('User email is not valid.')
        return normalized


class ScheduleRequest(BaseModel):
    date: date
    start_hour: int = Field(alias='startHour')
    end_hour: int = Field(alias='endHour')
    duration_minutes: int = Field(alias='durationMinutes')

    class Config:
        populate_by_name = True


class ScheduleResponse(BaseModel):
    success: bool = True
    created: int
    slots: list[SlotRecord]


class ExpireResponse(BaseModel):
    expired: int
    bookings: list[BookingRecord]


class SuccessResponse(BaseModel):
    success: bool = True
