import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "15"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "0"))
DB_POOL_TIMEOUT_SECONDS = float(os.getenv("DB_POOL_TIMEOUT_SECONDS", "5"))
DB_QUERY_TIMEOUT_MS = int(os.getenv("DB_QUERY_TIMEOUT_MS", "8000"))
DB_ECHO = _get_bool(os.getenv("DB_ECHO"), default=False)

# PENDING leaves room for an asynchronous confirmation step.
BOOKING_INITIAL_STATUS = os.getenv("BOOKING_INITIAL_STATUS", "CONFIRMED").strip().upper()
PENDING_BOOKING_TIMEOUT_MINUTES = int(os.getenv("PENDING_BOOKING_TIMEOUT_MINUTES", "2"))

# "retain": a cancelled booking's slot stays unavailable.
# "release": cancelling frees the slot for another booking.
CANCELLATION_POLICY = os.getenv("CANCELLATION_POLICY", "retain").strip().lower()

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

BOOKING_STATUSES = {"PENDING", "CONFIRMED"}
CANCELLATION_POLICIES = {"retain", "release"}


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_INITIAL_STATUS not in BOOKING_STATUSES:
        raise RuntimeError(f"BOOKING_INITIAL_STATUS must be one of {sorted(BOOKING_STATUSES)}.")
    if CANCELLATION_POLICY not in CANCELLATION_POLICIES:
        raise RuntimeError(f"CANCELLATION_POLICY must be one of {sorted(CANCELLATION_POLICIES)}.")
    if DB_POOL_SIZE < 1:
        raise RuntimeError("DB_POOL_SIZE must be at least 1.")
    if PENDING_BOOKING_TIMEOUT_MINUTES < 0:
        raise RuntimeError("PENDING_BOOKING_TIMEOUT_MINUTES cannot be negative.")
