"""Availability endpoint for the public booking calendar."""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.api.deps import Availability
from app.api.errors import error_response
from app.schemas.booking import AvailabilityQuery, AvailabilityResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()

CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"


@router.get(
    "",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Slot grid for a day",
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_availability(
    query: Annotated[AvailabilityQuery, Query()],
    service: Availability,
):
    """Return every 30-minute slot of the day with its availability.

    Dates that cannot be booked (past, weekend, after the same-day cutoff or
    beyond the horizon) are rejected with the reason.
    """
    result = await service.get_availability(query.day)

    if not result.ok:
        logger.warning(f"Availability rejected: date={query.date} code={result.code.value}")
        return error_response(result)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"ok": True, **result.data},
        headers={"Cache-Control": CACHE_CONTROL},
    )
