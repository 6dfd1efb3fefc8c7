"""Booking repository.

Data-access layer for bookings. Runs queries only; business rules live in
the services. Every round-trip is bounded by the repository timeout and any
store failure surfaces as ``StoreUnavailableError`` so callers can report a
retryable condition without leaking driver details.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Awaitable, Sequence, TypeVar

from sqlalchemy import and_, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import ACTIVE_STATUSES, Booking, BookingStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreUnavailableError(Exception):
    """Raised when the store cannot be reached or times out."""

    pass


class SlotConflictError(Exception):
    """Raised when another live booking already holds the slot key."""

    pass


class BookingRepository:
    """Repository for booking database operations."""

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout

    async def _run(self, awaitable: Awaitable[T], operation: str) -> T:
        """Await a store call under the timeout, mapping failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except IntegrityError:
            await self._rollback(operation)
            raise
        except (asyncio.TimeoutError, SQLAlchemyError, OSError) as exc:
            logger.error(f"Store call failed: operation={operation} error={exc!r}")
            await self._rollback(operation)
            raise StoreUnavailableError(operation) from exc

    async def _rollback(self, operation: str) -> None:
        try:
            await self.session.rollback()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning(f"Rollback failed after {operation}: {exc!r}")

    async def ping(self) -> None:
        """Round-trip to the store."""
        await self._run(self.session.execute(text("SELECT 1")), "ping")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_hold(self, **data: Any) -> Booking:
        """Persist a new held booking.

        Raises:
            SlotConflictError: the slot key is already taken
            StoreUnavailableError: the store failed
        """
        booking = Booking(status=BookingStatus.HELD.value, **data)
        self.session.add(booking)

        try:
            await self._run(self.session.commit(), "create_hold")
        except IntegrityError as exc:
            if "slot_key" in str(exc.orig):
                raise SlotConflictError(data.get("slot_key")) from exc
            logger.error(f"Unexpected integrity error creating hold: {exc.orig!r}")
            raise StoreUnavailableError("create_hold") from exc

        logger.debug(f"Hold created in DB: booking={booking.id} slot={booking.slot_key}")
        return booking

    async def release_stale_holds_for_slot(self, slot_key: str, now: datetime) -> int:
        """Expire lapsed holds still carrying ``slot_key``.

        Conditional on the hold having lapsed, so a live hold is never released.
        """
        result = await self._run(
            self.session.execute(
                update(Booking)
                .where(
                    Booking.slot_key == slot_key,
                    Booking.status == BookingStatus.HELD.value,
                    Booking.expires_at <= now,
                )
                .values(
                    status=BookingStatus.EXPIRED.value,
                    slot_key=None,
                    expires_at=None,
                )
                .execution_options(synchronize_session=False)
            ),
            "release_stale_holds_for_slot",
        )
        await self._run(self.session.commit(), "release_stale_holds_for_slot")
        return result.rowcount or 0

    async def confirm_held(
        self,
        session_token: str,
        contact: dict[str, str | None],
        roi: dict[str, Any],
        now: datetime,
    ) -> Booking | None:
        """Transition a live hold to confirmed.

        The update is conditioned on the record still being a live hold, so
        two racing confirmations (or a confirmation racing expiry) cannot
        both succeed. Returns None when no row matched.
        """
        result = await self._run(
            self.session.execute(
                update(Booking)
                .where(
                    Booking.session_token == session_token,
                    Booking.status == BookingStatus.HELD.value,
                    Booking.expires_at > now,
                )
                .values(
                    status=BookingStatus.CONFIRMED.value,
                    confirmed_at=now,
                    expires_at=None,
                    contact_full_name=contact["fullName"],
                    contact_email=contact["email"],
                    contact_phone=contact["phone"],
                    contact_clinic_name=contact.get("clinicName"),
                    contact_message=contact.get("message"),
                    roi=roi,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            ),
            "confirm_held",
        )
        await self._run(self.session.commit(), "confirm_held")

        if not result.rowcount:
            logger.warning("Booking not found or not in held status")
            return None

        booking = await self.find_by_session_token(session_token)
        if booking:
            logger.info(f"Booking confirmed in DB: booking={booking.id}")
        return booking

    async def cancel(self, cancel_token: str, now: datetime) -> Booking | None:
        """Mark a booking cancelled and free its slot."""
        result = await self._run(
            self.session.execute(
                update(Booking)
                .where(Booking.cancel_token == cancel_token)
                .values(
                    status=BookingStatus.CANCELLED.value,
                    expires_at=None,
                    slot_key=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            ),
            "cancel",
        )
        await self._run(self.session.commit(), "cancel")

        if not result.rowcount:
            return None

        booking = await self.find_by_cancel_token(cancel_token)
        if booking:
            logger.info(f"Booking cancelled in DB: booking={booking.id}")
        return booking

    async def mark_notification_sent(
        self,
        booking_id: str,
        provider: str,
        message_id: str | None,
        now: datetime,
    ) -> None:
        """Record a delivered confirmation message."""
        await self._run(
            self.session.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(
                    notification_sent=True,
                    notification_sent_at=now,
                    notification_provider=provider,
                    notification_message_id=message_id,
                    notification_error=None,
                )
                .execution_options(synchronize_session=False)
            ),
            "mark_notification_sent",
        )
        await self._run(self.session.commit(), "mark_notification_sent")

    async def mark_notification_error(
        self,
        booking_id: str,
        provider: str,
        error: str,
    ) -> None:
        """Record a failed confirmation message."""
        await self._run(
            self.session.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(
                    notification_provider=provider,
                    notification_error=error[:1000],
                )
                .execution_options(synchronize_session=False)
            ),
            "mark_notification_error",
        )
        await self._run(self.session.commit(), "mark_notification_error")
        logger.warning(f"Notification error recorded: booking={booking_id}")

    async def expire_stale_holds(self, now: datetime) -> int:
        """Materialise expiry for every lapsed hold."""
        result = await self._run(
            self.session.execute(
                update(Booking)
                .where(
                    Booking.status == BookingStatus.HELD.value,
                    Booking.expires_at <= now,
                )
                .values(
                    status=BookingStatus.EXPIRED.value,
                    slot_key=None,
                    expires_at=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            ),
            "expire_stale_holds",
        )
        await self._run(self.session.commit(), "expire_stale_holds")
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _first(self, stmt, operation: str) -> Booking | None:
        result = await self._run(
            self.session.execute(stmt.execution_options(populate_existing=True)),
            operation,
        )
        return result.scalar_one_or_none()

    async def find_by_session_token(self, session_token: str) -> Booking | None:
        """Get booking by confirmation token."""
        return await self._first(
            select(Booking).where(Booking.session_token == session_token),
            "find_by_session_token",
        )

    async def find_by_cancel_token(self, cancel_token: str) -> Booking | None:
        """Get booking by cancellation token."""
        return await self._first(
            select(Booking).where(Booking.cancel_token == cancel_token),
            "find_by_cancel_token",
        )

    async def find_overlapping_bookings(
        self,
        start_at: datetime,
        end_at: datetime,
        now: datetime,
    ) -> Sequence[Booking]:
        """Get bookings occupying any part of ``[start_at, end_at)``.

        Held bookings whose hold has lapsed are treated as already expired.
        """
        result = await self._run(
            self.session.execute(
                select(Booking)
                .where(
                    Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
                    Booking.start_at < end_at,
                    Booking.end_at > start_at,
                    or_(
                        Booking.status == BookingStatus.CONFIRMED.value,
                        and_(
                            Booking.expires_at.is_not(None),
                            Booking.expires_at > now,
                        ),
                    ),
                )
                .order_by(Booking.start_at)
            ),
            "find_overlapping_bookings",
        )
        bookings = result.scalars().all()
        logger.debug(
            f"Overlapping bookings query: start={start_at.isoformat()} "
            f"end={end_at.isoformat()} count={len(bookings)}"
        )
        return bookings

    async def list_bookings(
        self,
        page: int = 1,
        limit: int = 20,
        status: BookingStatus | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> dict[str, Any]:
        """Paginated listing for the admin view, newest first."""
        page = max(page, 1)
        limit = max(limit, 1)

        conditions = []
        if status:
            conditions.append(Booking.status == status.value)
        if date_from:
            conditions.append(Booking.date >= date_from)
        if date_to:
            conditions.append(Booking.date <= date_to)

        query = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_query = select(func.count()).select_from(Booking).where(*conditions)

        result = await self._run(self.session.execute(query), "list_bookings")
        bookings = result.scalars().all()
        total_result = await self._run(self.session.execute(count_query), "count_bookings")
        total = total_result.scalar_one()

        return {
            "bookings": bookings,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        }
