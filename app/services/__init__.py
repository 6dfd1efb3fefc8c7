"""Business logic services."""

from app.services.availability import AvailabilityService
from app.services.booking import BookingService
from app.services.expiry import ExpiryService
from app.services.notification import NotificationDispatcher

__all__ = [
    "AvailabilityService",
    "BookingService",
    "ExpiryService",
    "NotificationDispatcher",
]
