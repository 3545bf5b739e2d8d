"""Fail PENDING bookings that were never confirmed and release their slots.

Usage:
    python -m clinic_booking.expire_bookings [THRESHOLD_MINUTES]

Meant to be run from cron or a scheduler; safe to run repeatedly.
"""
import logging
import sys

from clinic_booking.core import config
from clinic_booking.core.errors import BookingError
from clinic_booking.database import session_scope
from clinic_booking.services.booking_service import expire_stale_bookings


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    args = sys.argv[1:] if argv is None else argv

    try:
        threshold = int(args[0]) if args else config.PENDING_BOOKING_TIMEOUT_MINUTES
    except ValueError:
        print(f"Threshold must be a whole number of minutes, got {args[0]!r}", file=sys.stderr)
        return 2

    try:
        with session_scope() as db:
            expired = expire_stale_bookings(db, threshold)
    except BookingError as exc:
        print(f"Expiry sweep failed: {exc.message}", file=sys.stderr)
        return 1

    for booking in expired:
        print(f"{booking.id}\tslot={booking.slot_id}\t{booking.user_name}")
    print(f"Expired {len(expired)} booking(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
