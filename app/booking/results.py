"""Result type and error codes shared by the booking services.

Services report business outcomes as a ``ServiceResult`` instead of raising,
so callers can always tell "fix your input" from "retry later" from "this
token or slot is permanently unusable".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class BookingErrorCode(str, Enum):
    """Machine-readable failure codes."""

    # Input
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    INVALID_DATE = "INVALID_DATE"

    # Business rules
    DATE_IN_PAST = "DATE_IN_PAST"
    WEEKEND_NOT_ALLOWED = "WEEKEND_NOT_ALLOWED"
    CUTOFF_EXCEEDED = "CUTOFF_EXCEEDED"
    SLOT_TAKEN = "SLOT_TAKEN"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    BOOKING_NOT_HELD = "BOOKING_NOT_HELD"
    ROI_REQUIRED = "ROI_REQUIRED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Infrastructure (retryable)
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: dict[str, dict[BookingErrorCode, str]] = {
    "es": {
        BookingErrorCode.INVALID_INPUT: "Datos inválidos",
        BookingErrorCode.INVALID_TIMEZONE: "Solo se acepta timezone Europe/Madrid",
        BookingErrorCode.INVALID_DATE: "Fecha inválida",
        BookingErrorCode.DATE_IN_PAST: "La fecha no puede ser pasada",
        BookingErrorCode.WEEKEND_NOT_ALLOWED: "No se aceptan reservas en fines de semana",
        BookingErrorCode.CUTOFF_EXCEEDED: "No se pueden hacer reservas para hoy después de las 19:00",
        BookingErrorCode.SLOT_TAKEN: "Este horario ya está reservado",
        BookingErrorCode.TOKEN_INVALID: "Token inválido",
        BookingErrorCode.TOKEN_EXPIRED: "La reserva temporal ha expirado. Por favor selecciona otro horario.",
        BookingErrorCode.BOOKING_NOT_HELD: "La reserva no está en estado válido para confirmar",
        BookingErrorCode.ROI_REQUIRED: "Se requiere completar la calculadora ROI",
        BookingErrorCode.RATE_LIMIT_EXCEEDED: "Demasiadas solicitudes. Inténtalo más tarde.",
        BookingErrorCode.INTERNAL_ERROR: "Servicio no disponible temporalmente",
    },
    "en": {
        BookingErrorCode.INVALID_INPUT: "Invalid input",
        BookingErrorCode.INVALID_TIMEZONE: "Only the Europe/Madrid timezone is supported",
        BookingErrorCode.INVALID_DATE: "Invalid date",
        BookingErrorCode.DATE_IN_PAST: "The date cannot be in the past",
        BookingErrorCode.WEEKEND_NOT_ALLOWED: "Bookings are not available at weekends",
        BookingErrorCode.CUTOFF_EXCEEDED: "Same-day bookings close at 19:00",
        BookingErrorCode.SLOT_TAKEN: "This time slot is no longer available",
        BookingErrorCode.TOKEN_INVALID: "Invalid token",
        BookingErrorCode.TOKEN_EXPIRED: "The temporary hold has expired. Please pick another time.",
        BookingErrorCode.BOOKING_NOT_HELD: "The booking cannot be confirmed in its current state",
        BookingErrorCode.ROI_REQUIRED: "The ROI calculator must be completed first",
        BookingErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please try again later.",
        BookingErrorCode.INTERNAL_ERROR: "Service temporarily unavailable",
    },
}


def error_message(code: BookingErrorCode, locale: str | None = None) -> str:
    """Human-readable message for a code, Spanish by default."""
    table = ERROR_MESSAGES.get(locale or "es", ERROR_MESSAGES["es"])
    return table[code]


@dataclass
class ServiceResult(Generic[T]):
    """Tagged outcome of a booking operation.

    Attributes:
        ok: Whether the operation succeeded
        data: Payload on success
        code: Failure code on error
        message: Human-readable failure message
        retryable: True only for infrastructure failures
    """

    ok: bool
    data: T | None = None
    code: BookingErrorCode | None = None
    message: str | None = None
    retryable: bool = False
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: T) -> "ServiceResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        code: BookingErrorCode,
        locale: str | None = None,
        message: str | None = None,
    ) -> "ServiceResult[T]":
        return cls(
            ok=False,
            code=code,
            message=message or error_message(code, locale),
            retryable=code == BookingErrorCode.INTERNAL_ERROR,
        )
