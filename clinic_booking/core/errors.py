"""Error taxonomy shared by the slot, booking and schedule services.

Services raise these; the HTTP layer maps ``status_code`` and ``message``
straight onto the response, so ``message`` must never carry internal detail.
"""

from sqlalchemy import exc as sa_exc


class BookingError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    status_code = 400
    default_message = 'Invalid request'


class NotFoundError(BookingError):
    status_code = 404
    default_message = 'Not found'


class SlotNotFound(NotFoundError):
    default_message = 'Slot not found'


class DoctorNotFound(NotFoundError):
    default_message = 'Doctor not found'


class BookingNotFound(NotFoundError):
    default_message = 'Booking not found'


class ConflictError(BookingError):
    status_code = 409
    default_message = 'Conflict'


class SlotAlreadyBooked(ConflictError):
    default_message = 'Slot already booked'


class StoreError(BookingError):
    status_code = 500
    default_message = 'Internal server error'


class StoreTimeoutError(StoreError):
    default_message = 'Database operation timed out'


class PoolExhaustionError(StoreError):
    pass


class StoreUnavailableError(StoreError):
    status_code = 503
    default_message = 'Database unavailable. Verify DATABASE_URL and database credentials.'


_TIMEOUT_MARKERS = (
    'statement timeout',
    'canceling statement',
    'lock timeout',
    'database is locked',
)


def _is_timeout(error: sa_exc.DBAPIError) -> bool:
    pgcode = getattr(error.orig, 'pgcode', None)
    # 57014: query_canceled, 55P03: lock_not_available
    if pgcode in {'57014', '55P03'}:
        return True
    text = str(error.orig).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def classify_store_error(error: Exception) -> BookingError:
    if isinstance(error, BookingError):
        return error
    if isinstance(error, sa_exc.IntegrityError):
        return ValidationError('Request violates a data constraint.')
    if isinstance(error, sa_exc.TimeoutError):
        return PoolExhaustionError()
    if isinstance(error, sa_exc.OperationalError):
        if _is_timeout(error):
            return StoreTimeoutError()
        return StoreUnavailableError()
    return StoreError()
