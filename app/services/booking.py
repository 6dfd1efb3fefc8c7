"""Booking service.

Business logic for the hold -> confirm / cancel lifecycle:
- A hold claims one 30-minute slot for 10 minutes
- Confirmation requires a live hold, contact details and ROI data
- Cancellation frees the slot for good

Each booking gets three independent capability tokens (session, cancel,
reschedule). All operations return a ``ServiceResult``; nothing here raises
for a business outcome.

Race safety relies on the store, not on the read that precedes a write: the
slot key unique constraint serialises holds on a slot and confirmation is a
conditional update on the hold still being live.
"""

import logging
from datetime import datetime
from typing import Any, Callable

from app.booking.calendar import (
    HOLD_DURATION,
    OPERATING_TIMEZONE,
    is_valid_slot_time,
    parse_iso_date,
    parse_slot_time,
    slot_bounds,
    validate_booking_date,
)
from app.booking.results import BookingErrorCode, ServiceResult
from app.core.logging import booking_events, mask_token
from app.core.security import (
    generate_cancel_token,
    generate_reschedule_token,
    generate_session_token,
)
from app.db.base import utc_now
from app.models.booking import Booking, BookingStatus, make_slot_key
from app.repositories.booking import (
    BookingRepository,
    SlotConflictError,
    StoreUnavailableError,
)
from app.services.availability import AvailabilityService
from app.services.notification import NotificationDispatcher, NotificationOutcome
from app.utils.time import format_datetime, format_optional

logger = logging.getLogger(__name__)


class BookingService:
    """Service for holds, confirmations and cancellations."""

    def __init__(
        self,
        repository: BookingRepository,
        notifier: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] = utc_now,
        public_base_url: str = "",
    ):
        self.repository = repository
        self.availability = AvailabilityService(repository, clock=clock)
        self.notifier = notifier or NotificationDispatcher(enabled=False)
        self.clock = clock
        self.public_base_url = public_base_url.rstrip("/")

    # =========================================================================
    # HOLDS
    # =========================================================================

    async def create_hold(
        self,
        date: str,
        time: str,
        timezone: str,
        locale: str = "es",
    ) -> ServiceResult[dict[str, Any]]:
        """Create a temporary hold on one slot.

        Checks, in order: timezone, date rules, slot on the grid, occupancy.
        Nothing is written unless every check passes.
        """
        logger.info(f"Creating hold: date={date} time={time}")

        if timezone != OPERATING_TIMEZONE:
            return ServiceResult.failure(BookingErrorCode.INVALID_TIMEZONE, locale)

        now = self.clock()

        day = parse_iso_date(date)
        check = validate_booking_date(day, now)
        if not check.valid:
            return ServiceResult.failure(BookingErrorCode(check.reason.value), locale)

        start = parse_slot_time(time)
        if start is None or not is_valid_slot_time(start):
            return ServiceResult.failure(BookingErrorCode.INVALID_DATE, locale)

        slot_key = make_slot_key(date, time)
        start_at, end_at = slot_bounds(day, start)
        expires_at = now + HOLD_DURATION

        try:
            # Lapsed holds keep their slot key until swept; free it first
            await self.repository.release_stale_holds_for_slot(slot_key, now)

            if not await self.availability.is_slot_available(day, start, now):
                return ServiceResult.failure(BookingErrorCode.SLOT_TAKEN, locale)

            session_token = generate_session_token()
            booking = await self.repository.create_hold(
                session_token=session_token,
                cancel_token=generate_cancel_token(),
                reschedule_token=generate_reschedule_token(),
                date=date,
                time=time,
                start_at=start_at,
                end_at=end_at,
                expires_at=expires_at,
                timezone=timezone,
                locale=locale,
                slot_key=slot_key,
            )
        except SlotConflictError:
            logger.info(f"Hold lost race for slot={slot_key}")
            return ServiceResult.failure(BookingErrorCode.SLOT_TAKEN, locale)
        except StoreUnavailableError:
            return ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR, locale)

        booking_events.log(
            "hold_created",
            booking.id,
            {"slot": slot_key, "session": mask_token(session_token)},
        )

        return ServiceResult.success(
            {
                "sessionToken": session_token,
                "booking": self._hold_view(booking),
            }
        )

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def confirm_booking(
        self,
        session_token: str,
        contact: dict[str, str | None],
        roi: dict[str, Any] | None,
    ) -> ServiceResult[dict[str, Any]]:
        """Upgrade a live hold into a confirmed booking.

        A hold that has lapsed is reported as TOKEN_EXPIRED and never
        resurrected. Failures leave the record untouched.
        """
        logger.info(f"Confirming booking: session={mask_token(session_token)}")

        try:
            booking = await self.repository.find_by_session_token(session_token)
        except StoreUnavailableError:
            return ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR)

        if not booking:
            return ServiceResult.failure(BookingErrorCode.TOKEN_INVALID)

        locale = booking.locale
        now = self.clock()

        if booking.status == BookingStatus.EXPIRED or booking.is_expired(now):
            return ServiceResult.failure(BookingErrorCode.TOKEN_EXPIRED, locale)

        if booking.status != BookingStatus.HELD:
            return ServiceResult.failure(BookingErrorCode.BOOKING_NOT_HELD, locale)

        if not roi:
            return ServiceResult.failure(BookingErrorCode.ROI_REQUIRED, locale)

        try:
            confirmed = await self.repository.confirm_held(session_token, contact, roi, now)
            if confirmed is None:
                # Lost a race with another confirmation, a cancellation or expiry
                current = await self.repository.find_by_session_token(session_token)
                if current is not None and (
                    current.status == BookingStatus.EXPIRED or current.is_expired(now)
                ):
                    return ServiceResult.failure(BookingErrorCode.TOKEN_EXPIRED, locale)
                return ServiceResult.failure(BookingErrorCode.BOOKING_NOT_HELD, locale)
        except StoreUnavailableError:
            return ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR, locale)

        booking_events.log(
            "booking_confirmed",
            confirmed.id,
            {"slot": confirmed.slot_key},
        )

        links = self._links(confirmed)
        outcome = await self.notifier.dispatch(confirmed, links)
        await self._record_notification(confirmed, outcome, now)

        return ServiceResult.success(
            {
                "booking": self._confirmed_view(confirmed),
                "cancel": {"token": confirmed.cancel_token, "url": links["cancel"]},
                "reschedule": {
                    "token": confirmed.reschedule_token,
                    "url": links["reschedule"],
                },
                "ics": {"url": links["ics"]},
                "notification": outcome.as_response(),
            }
        )

    async def _record_notification(
        self,
        booking: Booking,
        outcome: NotificationOutcome,
        now: datetime,
    ) -> None:
        """Store the dispatch outcome; the confirmation stands either way."""
        if outcome.skipped:
            return

        try:
            if outcome.ok:
                await self.repository.mark_notification_sent(
                    booking.id, outcome.provider or "unknown", outcome.message_id, now
                )
            else:
                await self.repository.mark_notification_error(
                    booking.id, outcome.provider or "unknown", outcome.error or "unknown"
                )
        except StoreUnavailableError:
            logger.error(f"Could not record notification outcome for booking={booking.id}")

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    async def cancel_booking(self, cancel_token: str) -> ServiceResult[dict[str, Any]]:
        """Cancel a held or confirmed booking.

        Idempotent: cancelling twice succeeds both times.
        """
        logger.info(f"Cancelling booking: cancel={mask_token(cancel_token, 14)}")

        try:
            booking = await self.repository.find_by_cancel_token(cancel_token)
            if not booking:
                return ServiceResult.failure(BookingErrorCode.TOKEN_INVALID)

            cancelled = await self.repository.cancel(cancel_token, self.clock())
        except StoreUnavailableError:
            return ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR)

        if cancelled is None:
            return ServiceResult.failure(BookingErrorCode.TOKEN_INVALID)

        booking_events.log("booking_cancelled", cancelled.id)

        return ServiceResult.success(
            {
                "booking": {
                    "id": cancelled.id,
                    "status": BookingStatus(cancelled.status).value,
                }
            }
        )

    # =========================================================================
    # VIEWS
    # =========================================================================

    def _links(self, booking: Booking) -> dict[str, str]:
        base = self.public_base_url
        return {
            "cancel": f"{base}/api/bookings/cancel?token={booking.cancel_token}",
            "reschedule": f"{base}/api/bookings/reschedule?token={booking.reschedule_token}",
            "ics": f"{base}/api/bookings/{booking.id}/calendar.ics",
        }

    @staticmethod
    def _hold_view(booking: Booking) -> dict[str, Any]:
        return {
            "date": booking.date,
            "time": booking.time,
            "startAtISO": format_datetime(booking.start_at),
            "endAtISO": format_datetime(booking.end_at),
            "expiresAtISO": format_optional(booking.expires_at),
            "timezone": booking.timezone,
            "locale": booking.locale,
            "status": BookingStatus(booking.status).value,
        }

    @staticmethod
    def _confirmed_view(booking: Booking) -> dict[str, Any]:
        return {
            "id": booking.id,
            "status": BookingStatus(booking.status).value,
            "date": booking.date,
            "time": booking.time,
            "startAtISO": format_datetime(booking.start_at),
            "endAtISO": format_datetime(booking.end_at),
            "timezone": booking.timezone,
            "locale": booking.locale,
            "confirmedAtISO": format_optional(booking.confirmed_at),
            "contact": booking.contact,
        }
