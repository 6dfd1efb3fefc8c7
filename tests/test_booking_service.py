"""Tests for the hold -> confirm / cancel lifecycle.

Covers:
- Hold creation and its rejections
- Confirmation rules (expiry, single use, ROI)
- Cancellation freeing the slot
- Notification outcome recording
- Concurrent holds on the same slot
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.booking.results import BookingErrorCode
from app.db.base import Base
from app.models.booking import Booking, BookingStatus
from app.repositories.booking import BookingRepository, StoreUnavailableError
from app.services.availability import AvailabilityService
from app.services.booking import BookingService
from app.services.notification import (
    LogNotificationProvider,
    NotificationDispatcher,
    NotificationProvider,
    NotificationProviderError,
)

MONDAY = "2026-02-16"


def _slot(grid: list[dict], start: str) -> dict:
    return next(slot for slot in grid if slot["start"] == start)


async def _count_bookings(session: AsyncSession) -> int:
    result = await session.execute(select(Booking))
    return len(result.scalars().all())


class FailingProvider(NotificationProvider):
    provider_name = "failing"

    async def send_confirmation(self, booking, links):
        raise NotificationProviderError("mailbox unavailable")


class TestCreateHold:
    """Tests for BookingService.create_hold."""

    @pytest.mark.asyncio
    async def test_creates_hold(self, booking_service: BookingService, clock) -> None:
        result = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid", "es")

        assert result.ok is True
        assert result.data["sessionToken"].startswith("tok_")
        assert len(result.data["sessionToken"]) == 4 + 64

        booking = result.data["booking"]
        assert booking["status"] == "held"
        assert booking["date"] == MONDAY
        assert booking["time"] == "09:00"
        assert booking["startAtISO"] == "2026-02-16T08:00:00.000Z"
        assert booking["endAtISO"] == "2026-02-16T08:30:00.000Z"
        assert booking["expiresAtISO"] == "2026-02-16T07:10:00.000Z"
        assert booking["timezone"] == "Europe/Madrid"

    @pytest.mark.asyncio
    async def test_tokens_are_independent(self, booking_service, repository) -> None:
        result = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        booking = await repository.find_by_session_token(result.data["sessionToken"])
        assert booking.cancel_token.startswith("cancel_")
        assert booking.reschedule_token.startswith("reschedule_")
        assert len({booking.session_token, booking.cancel_token, booking.reschedule_token}) == 3
        assert booking.slot_key == "2026-02-16T09:00"

    @pytest.mark.asyncio
    async def test_invalid_timezone(self, booking_service, async_session) -> None:
        result = await booking_service.create_hold(MONDAY, "09:00", "Europe/London")

        assert result.code == BookingErrorCode.INVALID_TIMEZONE
        assert await _count_bookings(async_session) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("time_label", ["09:00", "12:30", "17:00"])
    async def test_weekend_always_rejected(self, booking_service, async_session, time_label) -> None:
        result = await booking_service.create_hold("2026-02-21", time_label, "Europe/Madrid")

        assert result.ok is False
        assert result.code == BookingErrorCode.WEEKEND_NOT_ALLOWED
        assert await _count_bookings(async_session) == 0

    @pytest.mark.asyncio
    async def test_past_date(self, booking_service) -> None:
        result = await booking_service.create_hold("2026-02-13", "09:00", "Europe/Madrid")

        assert result.code == BookingErrorCode.DATE_IN_PAST

    @pytest.mark.asyncio
    async def test_malformed_date(self, booking_service) -> None:
        result = await booking_service.create_hold("2026-02-30", "09:00", "Europe/Madrid")

        assert result.code == BookingErrorCode.INVALID_DATE

    @pytest.mark.asyncio
    async def test_time_off_grid(self, booking_service) -> None:
        result = await booking_service.create_hold(MONDAY, "18:00", "Europe/Madrid")

        assert result.code == BookingErrorCode.INVALID_DATE

    @pytest.mark.asyncio
    async def test_no_slot_starts_at_half_past_five(self, booking_service, async_session) -> None:
        result = await booking_service.create_hold(MONDAY, "17:30", "Europe/Madrid")

        assert result.code == BookingErrorCode.INVALID_DATE
        assert await _count_bookings(async_session) == 0

    @pytest.mark.asyncio
    async def test_same_day_cutoff_boundary(self, booking_service, clock) -> None:
        tomorrow = "2026-02-17"

        # 18:59:59 Madrid
        clock.now = datetime(2026, 2, 16, 17, 59, 59, tzinfo=timezone.utc)
        before = await booking_service.create_hold(MONDAY, "17:00", "Europe/Madrid")
        assert before.ok is True

        # 19:00:00 Madrid
        clock.now = datetime(2026, 2, 16, 18, 0, 0, tzinfo=timezone.utc)
        at_cutoff = await booking_service.create_hold(MONDAY, "16:30", "Europe/Madrid")
        assert at_cutoff.code == BookingErrorCode.CUTOFF_EXCEEDED

        assert (await booking_service.create_hold(tomorrow, "09:00", "Europe/Madrid")).ok

    @pytest.mark.asyncio
    async def test_slot_taken(self, booking_service, async_session) -> None:
        first = await booking_service.create_hold(MONDAY, "10:00", "Europe/Madrid")
        second = await booking_service.create_hold(MONDAY, "10:00", "Europe/Madrid")

        assert first.ok is True
        assert second.ok is False
        assert second.code == BookingErrorCode.SLOT_TAKEN
        assert second.retryable is False
        assert await _count_bookings(async_session) == 1

    @pytest.mark.asyncio
    async def test_english_messages(self, booking_service) -> None:
        result = await booking_service.create_hold("2026-02-21", "09:00", "Europe/Madrid", "en")

        assert result.message == "Bookings are not available at weekends"

    @pytest.mark.asyncio
    async def test_store_failure_is_retryable(self, clock) -> None:
        repository = AsyncMock()
        repository.release_stale_holds_for_slot.side_effect = StoreUnavailableError("release")
        service = BookingService(repository, clock=clock)

        result = await service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        assert result.code == BookingErrorCode.INTERNAL_ERROR
        assert result.retryable is True
        repository.create_hold.assert_not_called()


class TestConfirmBooking:
    """Tests for BookingService.confirm_booking."""

    @pytest.mark.asyncio
    async def test_round_trip(
        self, booking_service, availability_service, valid_contact, valid_roi
    ) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid", "es")
        token = hold.data["sessionToken"]

        grid = (await availability_service.get_availability(date(2026, 2, 16))).data["slots"]
        assert _slot(grid, "09:00")["available"] is False

        result = await booking_service.confirm_booking(token, valid_contact, valid_roi)

        assert result.ok is True
        booking = result.data["booking"]
        assert booking["status"] == "confirmed"
        assert booking["confirmedAtISO"] == "2026-02-16T07:00:00.000Z"
        assert booking["contact"]["email"] == "lucia@clinica.es"

        cancel = result.data["cancel"]
        assert cancel["token"].startswith("cancel_")
        assert cancel["url"] == f"https://clinvetia.test/api/bookings/cancel?token={cancel['token']}"
        assert result.data["reschedule"]["token"].startswith("reschedule_")
        assert result.data["ics"]["url"].endswith(f"/api/bookings/{booking['id']}/calendar.ics")
        assert result.data["notification"] == {"enabled": False, "skipped": True, "ok": False}

        grid = (await availability_service.get_availability(date(2026, 2, 16))).data["slots"]
        assert _slot(grid, "09:00")["available"] is False

    @pytest.mark.asyncio
    async def test_confirmation_is_single_use(self, booking_service, valid_contact, valid_roi) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        token = hold.data["sessionToken"]

        first = await booking_service.confirm_booking(token, valid_contact, valid_roi)
        second = await booking_service.confirm_booking(token, valid_contact, valid_roi)

        assert first.ok is True
        assert second.code == BookingErrorCode.BOOKING_NOT_HELD

    @pytest.mark.asyncio
    async def test_unknown_token(self, booking_service, valid_contact, valid_roi) -> None:
        result = await booking_service.confirm_booking("tok_doesnotexist", valid_contact, valid_roi)

        assert result.code == BookingErrorCode.TOKEN_INVALID

    @pytest.mark.asyncio
    async def test_cancel_token_cannot_confirm(self, booking_service, repository, valid_contact, valid_roi) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        booking = await repository.find_by_session_token(hold.data["sessionToken"])

        result = await booking_service.confirm_booking(booking.cancel_token, valid_contact, valid_roi)

        assert result.code == BookingErrorCode.TOKEN_INVALID

    @pytest.mark.asyncio
    async def test_expired_hold(
        self, booking_service, availability_service, repository, clock, valid_contact, valid_roi
    ) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        token = hold.data["sessionToken"]

        clock.advance(minutes=10)

        grid = (await availability_service.get_availability(date(2026, 2, 16))).data["slots"]
        assert _slot(grid, "09:00")["available"] is True

        result = await booking_service.confirm_booking(token, valid_contact, valid_roi)
        assert result.code == BookingErrorCode.TOKEN_EXPIRED

        booking = await repository.find_by_session_token(token)
        assert booking.status == BookingStatus.HELD.value
        assert booking.contact_email is None

    @pytest.mark.asyncio
    async def test_live_hold_one_second_before_expiry(
        self, booking_service, clock, valid_contact, valid_roi
    ) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        clock.advance(minutes=9, seconds=59)
        result = await booking_service.confirm_booking(
            hold.data["sessionToken"], valid_contact, valid_roi
        )

        assert result.ok is True

    @pytest.mark.asyncio
    async def test_lapsed_hold_is_replaced(
        self, booking_service, repository, clock, valid_contact, valid_roi
    ) -> None:
        old = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        clock.advance(minutes=11)

        new = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        assert new.ok is True

        replaced = await repository.find_by_session_token(old.data["sessionToken"])
        assert replaced.status == BookingStatus.EXPIRED.value
        assert replaced.slot_key is None

        result = await booking_service.confirm_booking(
            old.data["sessionToken"], valid_contact, valid_roi
        )
        assert result.code == BookingErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("roi", [None, {}])
    async def test_roi_required(self, booking_service, repository, valid_contact, roi) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        token = hold.data["sessionToken"]

        result = await booking_service.confirm_booking(token, valid_contact, roi)

        assert result.code == BookingErrorCode.ROI_REQUIRED
        booking = await repository.find_by_session_token(token)
        assert booking.status == BookingStatus.HELD.value

    @pytest.mark.asyncio
    async def test_locale_of_hold_used_for_messages(self, booking_service, valid_contact) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid", "en")

        result = await booking_service.confirm_booking(hold.data["sessionToken"], valid_contact, {})

        assert result.message == "The ROI calculator must be completed first"

    @pytest.mark.asyncio
    async def test_lost_race_with_expiry(self, clock, valid_contact, valid_roi) -> None:
        """The conditional update rejects a hold that lapsed after it was read."""
        live = Booking(
            status=BookingStatus.HELD.value,
            expires_at=clock() + timedelta(minutes=1),
            locale="es",
        )
        lapsed = Booking(status=BookingStatus.EXPIRED.value, expires_at=None, locale="es")

        repository = AsyncMock()
        repository.find_by_session_token.side_effect = [live, lapsed]
        repository.confirm_held.return_value = None
        service = BookingService(repository, clock=clock)

        result = await service.confirm_booking("tok_racing_token", valid_contact, valid_roi)

        assert result.code == BookingErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_lost_race_with_confirmation(self, clock, valid_contact, valid_roi) -> None:
        live = Booking(
            status=BookingStatus.HELD.value,
            expires_at=clock() + timedelta(minutes=1),
            locale="es",
        )
        confirmed = Booking(status=BookingStatus.CONFIRMED.value, expires_at=None, locale="es")

        repository = AsyncMock()
        repository.find_by_session_token.side_effect = [live, confirmed]
        repository.confirm_held.return_value = None
        service = BookingService(repository, clock=clock)

        result = await service.confirm_booking("tok_racing_token", valid_contact, valid_roi)

        assert result.code == BookingErrorCode.BOOKING_NOT_HELD

    @pytest.mark.asyncio
    async def test_store_failure(self, clock, valid_contact, valid_roi) -> None:
        repository = AsyncMock()
        repository.find_by_session_token.side_effect = StoreUnavailableError("find")
        service = BookingService(repository, clock=clock)

        result = await service.confirm_booking("tok_any_token", valid_contact, valid_roi)

        assert result.code == BookingErrorCode.INTERNAL_ERROR
        assert result.retryable is True


class TestNotifications:
    """Tests for recording the confirmation message outcome."""

    @pytest.mark.asyncio
    async def test_sent_notification_recorded(
        self, repository, clock, valid_contact, valid_roi
    ) -> None:
        service = BookingService(
            repository,
            notifier=NotificationDispatcher(LogNotificationProvider(), enabled=True),
            clock=clock,
        )
        hold = await service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        result = await service.confirm_booking(hold.data["sessionToken"], valid_contact, valid_roi)

        assert result.data["notification"] == {"enabled": True, "skipped": False, "ok": True}
        booking = await repository.find_by_session_token(hold.data["sessionToken"])
        assert booking.notification_sent is True
        assert booking.notification_provider == "log"
        assert booking.notification_message_id.startswith("log_")

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_fail_confirmation(
        self, repository, clock, valid_contact, valid_roi
    ) -> None:
        service = BookingService(
            repository,
            notifier=NotificationDispatcher(FailingProvider(), enabled=True),
            clock=clock,
        )
        hold = await service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        result = await service.confirm_booking(hold.data["sessionToken"], valid_contact, valid_roi)

        assert result.ok is True
        assert result.data["booking"]["status"] == "confirmed"
        assert result.data["notification"]["ok"] is False

        booking = await repository.find_by_session_token(hold.data["sessionToken"])
        assert booking.notification_sent is False
        assert booking.notification_error == "mailbox unavailable"


class TestCancelBooking:
    """Tests for BookingService.cancel_booking."""

    @pytest.mark.asyncio
    async def test_cancel_frees_slot_and_blocks_confirmation(
        self, booking_service, availability_service, valid_contact, valid_roi
    ) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        token = hold.data["sessionToken"]
        confirmed = await booking_service.confirm_booking(token, valid_contact, valid_roi)
        cancel_token = confirmed.data["cancel"]["token"]

        result = await booking_service.cancel_booking(cancel_token)

        assert result.ok is True
        assert result.data["booking"] == {
            "id": confirmed.data["booking"]["id"],
            "status": "cancelled",
        }

        grid = (await availability_service.get_availability(date(2026, 2, 16))).data["slots"]
        assert _slot(grid, "09:00")["available"] is True

        again = await booking_service.confirm_booking(token, valid_contact, valid_roi)
        assert again.code == BookingErrorCode.BOOKING_NOT_HELD

    @pytest.mark.asyncio
    async def test_cancel_held_booking(self, booking_service, repository, valid_contact, valid_roi) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        booking = await repository.find_by_session_token(hold.data["sessionToken"])

        result = await booking_service.cancel_booking(booking.cancel_token)
        assert result.ok is True

        confirm = await booking_service.confirm_booking(
            hold.data["sessionToken"], valid_contact, valid_roi
        )
        assert confirm.code == BookingErrorCode.BOOKING_NOT_HELD

        rebook = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        assert rebook.ok is True

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, booking_service, repository) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")
        booking = await repository.find_by_session_token(hold.data["sessionToken"])

        first = await booking_service.cancel_booking(booking.cancel_token)
        second = await booking_service.cancel_booking(booking.cancel_token)

        assert first.ok is True
        assert second.ok is True
        assert second.data["booking"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_unknown_cancel_token(self, booking_service) -> None:
        result = await booking_service.cancel_booking("cancel_doesnotexist")

        assert result.code == BookingErrorCode.TOKEN_INVALID

    @pytest.mark.asyncio
    async def test_session_token_cannot_cancel(self, booking_service) -> None:
        hold = await booking_service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        result = await booking_service.cancel_booking(hold.data["sessionToken"])

        assert result.code == BookingErrorCode.TOKEN_INVALID


class TestConcurrentHolds:
    """At most one live record per slot, whatever the interleaving."""

    @pytest.mark.asyncio
    async def test_slot_key_guards_stale_occupancy_check(self, repository, clock) -> None:
        """A hold that passed the occupancy check still loses to the unique slot key."""
        first = BookingService(repository, clock=clock)
        assert (await first.create_hold(MONDAY, "09:00", "Europe/Madrid")).ok

        second = BookingService(repository, clock=clock)
        with patch.object(AvailabilityService, "is_slot_available", AsyncMock(return_value=True)):
            result = await second.create_hold(MONDAY, "09:00", "Europe/Madrid")

        assert result.code == BookingErrorCode.SLOT_TAKEN

    @pytest.mark.asyncio
    async def test_parallel_holds_same_slot(self, tmp_path, clock) -> None:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
            poolclass=NullPool,
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        async def attempt():
            async with session_factory() as session:
                service = BookingService(BookingRepository(session, timeout=10.0), clock=clock)
                return await service.create_hold(MONDAY, "09:00", "Europe/Madrid")

        try:
            results = await asyncio.gather(*(attempt() for _ in range(2)))

            assert sum(1 for r in results if r.ok) == 1
            assert all(r.code == BookingErrorCode.SLOT_TAKEN for r in results if not r.ok)

            async with session_factory() as session:
                rows = (await session.execute(select(Booking))).scalars().all()
            assert len(rows) == 1
        finally:
            await engine.dispose()
