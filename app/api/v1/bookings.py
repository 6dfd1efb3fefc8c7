"""Booking lifecycle endpoints.

Hold a slot, confirm it with contact details, cancel it through the
cancel token (programmatically or from the e-mail link).
"""

import logging

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.deps import Bookings
from app.api.errors import error_body, error_response
from app.booking.results import BookingErrorCode
from app.core.logging import mask_token
from app.schemas.booking import (
    CancelBookingRequest,
    CancelBookingResponse,
    ConfirmBookingRequest,
    ConfirmBookingResponse,
    CreateHoldRequest,
    CreateHoldResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CANCELLED_REDIRECT = "/?cancelled=1"


@router.post(
    "",
    response_model=CreateHoldResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Hold a slot for 10 minutes",
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_hold(request: CreateHoldRequest, service: Bookings):
    """Create a temporary hold and return the session token used to confirm it."""
    result = await service.create_hold(
        date=request.date,
        time=request.time,
        timezone=request.timezone,
        locale=request.locale,
    )

    if not result.ok:
        logger.warning(f"Hold rejected: code={result.code.value}")
        return error_response(result)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"ok": True, **result.data},
    )


@router.post(
    "/confirm",
    response_model=ConfirmBookingResponse,
    summary="Confirm a held slot",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def confirm_booking(request: ConfirmBookingRequest, service: Bookings):
    """Turn a live hold into a confirmed booking."""
    result = await service.confirm_booking(
        session_token=request.sessionToken,
        contact=request.contact.as_contact(),
        roi=request.roi,
    )

    if not result.ok:
        logger.warning(f"Confirm rejected: code={result.code.value}")
        return error_response(result)

    return {"ok": True, **result.data}


@router.post(
    "/cancel",
    response_model=CancelBookingResponse,
    summary="Cancel a booking",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def cancel_booking(request: CancelBookingRequest, service: Bookings):
    """Cancel a held or confirmed booking by its cancel token."""
    result = await service.cancel_booking(request.token)

    if not result.ok:
        logger.warning(f"Cancel rejected: code={result.code.value}")
        return error_response(result)

    return {"ok": True, **result.data}


@router.get(
    "/cancel",
    summary="Cancel from the e-mail link",
    responses={
        303: {"description": "Cancelled; redirects to the home page"},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def cancel_booking_from_link(service: Bookings, token: str = Query("")):
    """Cancel through the link sent in the confirmation e-mail."""
    if len(token) < 8:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                BookingErrorCode.INVALID_INPUT, "Token de cancelación inválido"
            ),
        )

    result = await service.cancel_booking(token)

    if not result.ok:
        logger.warning(f"Cancel link rejected: token={mask_token(token, 14)} code={result.code.value}")
        return error_response(result)

    logger.info(f"Booking cancelled via e-mail link: booking={result.data['booking']['id']}")
    return RedirectResponse(url=CANCELLED_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)
