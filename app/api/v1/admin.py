"""Admin endpoints for booking operations.

Guarded by the ``X-Admin-Key`` header.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.api.deps import Expiry, Repository, require_admin
from app.api.errors import error_response
from app.booking.results import BookingErrorCode, ServiceResult
from app.models.booking import BookingStatus
from app.repositories.booking import StoreUnavailableError
from app.schemas.booking import (
    BookingAdminRead,
    BookingListResponse,
    ErrorResponse,
    ExpireHoldsResponse,
)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/bookings",
    response_model=BookingListResponse,
    summary="List bookings",
    responses={503: {"model": ErrorResponse}},
)
async def list_bookings(
    repository: Repository,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: BookingStatus | None = Query(None),
    date_from: date | None = Query(None, alias="from"),
    date_to: date | None = Query(None, alias="to"),
):
    """Paginated bookings, newest first, filtered by status and date range."""
    try:
        listing = await repository.list_bookings(
            page=page,
            limit=limit,
            status=status,
            date_from=date_from.isoformat() if date_from else None,
            date_to=date_to.isoformat() if date_to else None,
        )
    except StoreUnavailableError:
        return error_response(ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR))

    return BookingListResponse(
        bookings=[BookingAdminRead.model_validate(b) for b in listing["bookings"]],
        total=listing["total"],
        page=listing["page"],
        limit=listing["limit"],
        pages=listing["pages"],
    )


@router.post(
    "/bookings/expire-holds",
    response_model=ExpireHoldsResponse,
    summary="Expire lapsed holds now",
    responses={503: {"model": ErrorResponse}},
)
async def expire_holds(service: Expiry):
    """Run the expiry sweep once and report how many holds were expired."""
    try:
        expired = await service.expire_stale_holds()
    except StoreUnavailableError:
        return error_response(ServiceResult.failure(BookingErrorCode.INTERNAL_ERROR))

    return ExpireHoldsResponse(expired=expired)
