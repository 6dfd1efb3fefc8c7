"""Pydantic schemas for booking operations.

Includes schemas for:
- Availability queries and the slot grid
- Hold creation
- Confirmation with contact and ROI data
- Cancellation
- Admin listing

Request schemas check shape and format only. Calendar rules (past dates,
weekends, same-day cutoff, horizon) are applied by the services so that
each rejection carries its own error code.
"""

import re
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.booking.calendar import is_valid_slot_time, parse_iso_date, parse_slot_time

Locale = Literal["es", "en"]

FULL_NAME_PATTERN = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑ\s'-]+$")
PHONE_PATTERN = re.compile(r"^(\+34)?[6-9]\d{8}$")


def _check_iso_date(value: str) -> str:
    if parse_iso_date(value) is None:
        raise ValueError("Fecha debe tener formato YYYY-MM-DD")
    return value


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


# =============================================================================
# Availability Schemas
# =============================================================================


class AvailabilityQuery(BaseModel):
    """Query for the slot grid of one day."""

    date: str = Field(..., description="Calendar date, YYYY-MM-DD")

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_iso_date(value)

    @property
    def day(self) -> date:
        return parse_iso_date(self.date)


class SlotRead(BaseModel):
    """One cell of the daily grid."""

    start: str
    end: str
    available: bool


class AvailabilityResponse(BaseModel):
    """Slot grid for a day."""

    ok: bool = True
    date: str
    timezone: str
    slotMinutes: int
    slots: list[SlotRead]


# =============================================================================
# Hold Schemas
# =============================================================================


class CreateHoldRequest(BaseModel):
    """Schema for claiming a slot."""

    date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    time: str = Field(..., description="Slot start, HH:MM")
    timezone: str = Field(..., description="Must be Europe/Madrid")
    locale: Locale = "es"

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_iso_date(value)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        start = parse_slot_time(value)
        if start is None or not is_valid_slot_time(start):
            raise ValueError(
                "Hora debe estar entre 09:00-17:00 en intervalos de 30 minutos"
            )
        return value


class HoldRead(BaseModel):
    """Hold summary returned to the client."""

    date: str
    time: str
    startAtISO: str
    endAtISO: str
    expiresAtISO: str | None
    timezone: str
    locale: str
    status: str


class CreateHoldResponse(BaseModel):
    ok: bool = True
    sessionToken: str
    booking: HoldRead


# =============================================================================
# Confirmation Schemas
# =============================================================================


class ContactIn(BaseModel):
    """Contact details supplied at confirmation."""

    fullName: str = Field(..., min_length=2)
    email: EmailStr
    phone: str
    clinicName: str | None = None
    message: str | None = Field(None, max_length=5000)

    @field_validator("fullName")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        if not FULL_NAME_PATTERN.match(value):
            raise ValueError(
                "Nombre solo puede contener letras, espacios, guiones y apóstrofes"
            )
        value = value.strip()
        if len(value.split()) < 2:
            raise ValueError("Introduce nombre y apellido completos")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        value = re.sub(r"\s+", "", value)
        if not PHONE_PATTERN.match(value):
            raise ValueError("Teléfono debe ser español (9 dígitos, empezando con 6-9)")
        return value

    @field_validator("clinicName", "message")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        return _blank_to_none(value)

    def as_contact(self) -> dict[str, str | None]:
        return {
            "fullName": self.fullName,
            "email": str(self.email),
            "phone": self.phone,
            "clinicName": self.clinicName,
            "message": self.message,
        }


class ConfirmBookingRequest(BaseModel):
    """Schema for confirming a held slot."""

    sessionToken: str = Field(..., min_length=10)
    locale: Locale = "es"
    contact: ContactIn
    roi: dict[str, Any] | None = None


class ContactRead(BaseModel):
    fullName: str
    email: str
    phone: str
    clinicName: str | None = None
    message: str | None = None


class ConfirmedBookingRead(BaseModel):
    """Confirmed booking as returned to the client."""

    id: str
    status: str
    date: str
    time: str
    startAtISO: str
    endAtISO: str
    timezone: str
    locale: str
    confirmedAtISO: str | None
    contact: ContactRead | None


class LinkRead(BaseModel):
    token: str
    url: str


class IcsRead(BaseModel):
    url: str


class NotificationRead(BaseModel):
    enabled: bool
    skipped: bool
    ok: bool


class ConfirmBookingResponse(BaseModel):
    ok: bool = True
    booking: ConfirmedBookingRead
    cancel: LinkRead
    reschedule: LinkRead
    ics: IcsRead
    notification: NotificationRead


# =============================================================================
# Cancellation Schemas
# =============================================================================


class CancelBookingRequest(BaseModel):
    """Schema for cancelling with a cancel token."""

    token: str = Field(..., min_length=8)


class CancelledBookingRead(BaseModel):
    id: str
    status: str


class CancelBookingResponse(BaseModel):
    ok: bool = True
    booking: CancelledBookingRead


# =============================================================================
# Admin Schemas
# =============================================================================


class BookingAdminRead(BaseModel):
    """Full booking record for the admin listing."""

    id: str
    status: str
    date: str
    time: str
    start_at: datetime
    end_at: datetime
    timezone: str
    locale: str
    expires_at: datetime | None = None
    confirmed_at: datetime | None = None
    contact: dict[str, str | None] | None = None
    roi: dict[str, Any] | None = None
    notification_sent: bool
    notification_error: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    """Paginated admin listing."""

    bookings: list[BookingAdminRead]
    total: int
    page: int
    limit: int
    pages: int


class ExpireHoldsResponse(BaseModel):
    ok: bool = True
    expired: int


class ErrorResponse(BaseModel):
    """Error envelope shared by every endpoint."""

    ok: bool = False
    code: str
    message: str
    fields: dict[str, list[str]] | None = None
