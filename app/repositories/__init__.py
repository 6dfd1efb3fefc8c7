"""Data-access layer."""

from app.repositories.booking import (
    BookingRepository,
    SlotConflictError,
    StoreUnavailableError,
)

__all__ = [
    "BookingRepository",
    "SlotConflictError",
    "StoreUnavailableError",
]
