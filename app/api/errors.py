"""JSON error envelope and status mapping for booking failures."""

from typing import Any

from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.booking.results import BookingErrorCode, ServiceResult, error_message

STATUS_BY_CODE: dict[BookingErrorCode, int] = {
    BookingErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.INVALID_TIMEZONE: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.ROI_REQUIRED: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.TOKEN_INVALID: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.SLOT_TAKEN: status.HTTP_409_CONFLICT,
    BookingErrorCode.BOOKING_NOT_HELD: status.HTTP_409_CONFLICT,
    BookingErrorCode.TOKEN_EXPIRED: status.HTTP_410_GONE,
    BookingErrorCode.INVALID_DATE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BookingErrorCode.DATE_IN_PAST: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BookingErrorCode.WEEKEND_NOT_ALLOWED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BookingErrorCode.CUTOFF_EXCEEDED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BookingErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    BookingErrorCode.INTERNAL_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_body(
    code: BookingErrorCode,
    message: str,
    fields: dict[str, list[str]] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"ok": False, "code": code.value, "message": message}
    if fields:
        body["fields"] = fields
    return body


def error_response(result: ServiceResult) -> JSONResponse:
    """Render a failed service result with its mapped HTTP status."""
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
        content=error_body(result.code, result.message, result.fields or None),
    )


def validation_error_response(exc: RequestValidationError) -> JSONResponse:
    """Render request validation errors as INVALID_INPUT with per-field messages."""
    fields: dict[str, list[str]] = {}
    first_message = None

    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        name = ".".join(loc) or "body"
        message = str(error.get("msg", "")).removeprefix("Value error, ")
        fields.setdefault(name, []).append(message)
        first_message = first_message or message

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            BookingErrorCode.INVALID_INPUT,
            first_message or error_message(BookingErrorCode.INVALID_INPUT),
            fields,
        ),
    )
