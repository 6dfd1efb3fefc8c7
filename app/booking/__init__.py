"""Booking rules and result types for appointment slots."""

from app.booking.calendar import (
    generate_daily_slots,
    is_date_bookable,
    validate_booking_date,
)
from app.booking.results import BookingErrorCode, ServiceResult

__all__ = [
    "BookingErrorCode",
    "ServiceResult",
    "generate_daily_slots",
    "is_date_bookable",
    "validate_booking_date",
]
