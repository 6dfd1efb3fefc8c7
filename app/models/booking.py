"""Booking model for the appointment widget.

A booking starts life as a temporary hold on one 30-minute slot and is
either confirmed, cancelled, or left to expire.

States:
- held: temporary claim, valid until ``expires_at``
- confirmed: permanent reservation with contact and ROI data
- expired: hold that lapsed before confirmation
- cancelled: released through the cancel token
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UTCDateTime


class BookingStatus(str, Enum):
    """Lifecycle state of a booking."""

    HELD = "held"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# States that occupy their slot
ACTIVE_STATUSES = (BookingStatus.HELD, BookingStatus.CONFIRMED)


def make_slot_key(date_str: str, time_str: str) -> str:
    """Derive the uniqueness key for an occupied slot."""
    return f"{date_str}T{time_str}"


class Booking(Base, TimestampMixin):
    """A claim on one appointment slot."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_start_end_status", "start_at", "end_at", "status"),
        Index("ix_bookings_date_time", "date", "time"),
        Index("ix_bookings_status_expires_at", "status", "expires_at"),
    )

    # Capability tokens
    session_token: Mapped[str] = mapped_column(
        String(80),
        unique=True,
        nullable=False,
        index=True,
    )
    cancel_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )
    reschedule_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    # Slot (civil date/time kept alongside the instants for querying)
    date: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
    )
    time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )
    start_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )
    end_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="Europe/Madrid",
    )
    # Set while the booking occupies its slot, NULL once terminal-and-free.
    # The unique constraint is what serialises concurrent holds on a slot.
    slot_key: Mapped[str | None] = mapped_column(
        String(16),
        unique=True,
        nullable=True,
    )

    # Lifecycle
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.HELD,
        index=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    locale: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
        default="es",
    )

    # Contact (NULL until confirmation)
    contact_full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contact_clinic_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ROI calculator payload (NULL until confirmation)
    roi: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Confirmation message tracking
    notification_sent: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    notification_sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notification_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notification_message_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notification_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def is_expired(self, now: datetime) -> bool:
        """Whether a hold has lapsed at ``now``.

        Only holds expire; confirmed or cancelled bookings have no expiry.
        """
        if self.status != BookingStatus.HELD or self.expires_at is None:
            return False
        return now >= self.expires_at

    def can_confirm(self, now: datetime) -> bool:
        """Check booking is a live hold."""
        return self.status == BookingStatus.HELD and not self.is_expired(now)

    @property
    def contact(self) -> dict[str, str | None] | None:
        """Contact details as a dict, or None before confirmation."""
        if self.contact_full_name is None:
            return None
        return {
            "fullName": self.contact_full_name,
            "email": self.contact_email,
            "phone": self.contact_phone,
            "clinicName": self.contact_clinic_name,
            "message": self.contact_message,
        }

    def __repr__(self) -> str:
        return f"<Booking {self.date} {self.time} {self.status}>"
