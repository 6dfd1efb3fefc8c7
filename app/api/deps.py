"""FastAPI dependency injection utilities."""

from datetime import datetime
from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import verify_admin_key
from app.db.base import utc_now
from app.db.session import get_db
from app.repositories.booking import BookingRepository
from app.services.availability import AvailabilityService
from app.services.booking import BookingService
from app.services.expiry import ExpiryService
from app.services.notification import (
    LogNotificationProvider,
    NotificationDispatcher,
    NotificationProvider,
)

Clock = Callable[[], datetime]

_PROVIDERS: dict[str, type[NotificationProvider]] = {
    "log": LogNotificationProvider,
}


def get_clock() -> Clock:
    """Wall clock used by the services; overridden in tests."""
    return utc_now


def get_notifier() -> NotificationDispatcher:
    """Build the confirmation dispatcher from settings."""
    provider_cls = _PROVIDERS.get(settings.notification_provider, LogNotificationProvider)
    return NotificationDispatcher(
        provider=provider_cls(),
        enabled=settings.notifications_enabled,
    )


def get_booking_repository(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> BookingRepository:
    return BookingRepository(session, timeout=settings.db_timeout_seconds)


def get_availability_service(
    repository: Annotated[BookingRepository, Depends(get_booking_repository)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> AvailabilityService:
    return AvailabilityService(repository, clock=clock)


def get_booking_service(
    repository: Annotated[BookingRepository, Depends(get_booking_repository)],
    notifier: Annotated[NotificationDispatcher, Depends(get_notifier)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> BookingService:
    return BookingService(
        repository,
        notifier=notifier,
        clock=clock,
        public_base_url=settings.public_base_url,
    )


def get_expiry_service(
    repository: Annotated[BookingRepository, Depends(get_booking_repository)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ExpiryService:
    return ExpiryService(repository, clock=clock)


async def require_admin(request: Request) -> None:
    """Reject requests without a valid ``X-Admin-Key`` header.

    Raises:
        HTTPException: If the key is missing or wrong
    """
    if not verify_admin_key(request.headers.get("X-Admin-Key")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Repository = Annotated[BookingRepository, Depends(get_booking_repository)]
Availability = Annotated[AvailabilityService, Depends(get_availability_service)]
Bookings = Annotated[BookingService, Depends(get_booking_service)]
Expiry = Annotated[ExpiryService, Depends(get_expiry_service)]
