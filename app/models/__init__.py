"""Database models for the booking service."""

from app.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    make_slot_key,
)

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "make_slot_key",
]
