"""Availability service.

Builds the daily slot grid for a date and marks which slots are occupied by
live holds or confirmed bookings. Occupancy is always read from the store;
nothing is cached between requests.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Callable

from app.booking.calendar import (
    OPERATING_TIMEZONE,
    SLOT_MINUTES,
    day_bounds,
    generate_daily_slots,
    slot_bounds,
    validate_booking_date,
)
from app.booking.results import BookingErrorCode, ServiceResult
from app.db.base import utc_now
from app.repositories.booking import BookingRepository, StoreUnavailableError

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Service for resolving slot occupancy."""

    def __init__(
        self,
        repository: BookingRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.clock = clock

    async def get_availability(self, day: date) -> ServiceResult[dict[str, Any]]:
        """Get the slot grid for ``day`` with occupancy.

        Returns a failed result for unbookable dates, and a retryable
        INTERNAL_ERROR when the store cannot be reached.
        """
        now = self.clock()

        check = validate_booking_date(day, now)
        if not check.valid:
            return ServiceResult.failure(BookingErrorCode(check.reason.value))

        try:
            grid = await self.resolve_grid(day, now)
        except StoreUnavailableError:
            return ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR)

        logger.info(
            f"Availability calculated: date={day.isoformat()} total={len(grid)} "
            f"available={sum(1 for s in grid if s['available'])}"
        )

        return ServiceResult.success(
            {
                "date": day.isoformat(),
                "timezone": OPERATING_TIMEZONE,
                "slotMinutes": SLOT_MINUTES,
                "slots": grid,
            }
        )

    async def resolve_grid(self, day: date, now: datetime) -> list[dict[str, Any]]:
        """Mark each grid slot available or not.

        Raises StoreUnavailableError on store failure.
        """
        day_start, day_end = day_bounds(day)
        bookings = await self.repository.find_overlapping_bookings(day_start, day_end, now)

        slots = []
        for slot in generate_daily_slots(day):
            slot_start, slot_end = slot_bounds(day, slot.start)
            occupied = any(
                booking.start_at < slot_end and booking.end_at > slot_start
                for booking in bookings
            )
            slots.append(
                {
                    "start": slot.start_label,
                    "end": slot.end_label,
                    "available": not occupied,
                }
            )

        return slots

    async def is_slot_available(self, day: date, start: time, now: datetime) -> bool:
        """Check a single slot is free at ``now``.

        Raises StoreUnavailableError on store failure.
        """
        slot_start, slot_end = slot_bounds(day, start)
        overlapping = await self.repository.find_overlapping_bookings(
            slot_start, slot_end, now
        )
        return len(overlapping) == 0
