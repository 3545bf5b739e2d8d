import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_booking.core import config
from clinic_booking.core.errors import BookingError, StoreError, classify_store_error
from clinic_booking.database import dispose_store, init_store
from clinic_booking.routes import admin_routes, booking_routes, doctor_routes, slot_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Clinic Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        init_store()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')
        if config.APP_ENV.lower() == 'production':
            raise


@app.on_event('shutdown')
def close_database() -> None:
    dispose_store()


@app.exception_handler(BookingError)
def handle_booking_error(request: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={'error': exc.message})


@app.exception_handler(SQLAlchemyError)
def handle_store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    return handle_booking_error(request, classify_store_error(exc))


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ())[1:])
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get('msg')))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': '; '.join(problems) or 'Invalid request'},
    )


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.detail},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'error': 'Internal server error'},
    )


@app.get('/')
def root():
    return {'status': 'ok', 'service': 'clinic-booking'}


app.include_router(admin_routes.router)
app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(slot_routes.router, prefix='/slots')
app.include_router(booking_routes.router, prefix='/bookings')
