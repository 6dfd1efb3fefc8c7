"""Confirmation message dispatch.

Delivery itself belongs to an external provider; this module only decides
whether a message is sent and reports the outcome so it can be recorded on
the booking.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

from app.models.booking import Booking

logger = logging.getLogger(__name__)


class NotificationProviderError(Exception):
    """Base exception for notification provider errors."""

    pass


class NotificationProvider(ABC):
    """Abstract base class for confirmation message providers."""

    provider_name: str = "abstract"

    @abstractmethod
    async def send_confirmation(self, booking: Booking, links: dict[str, str]) -> str:
        """Send the confirmation and return the provider message id.

        Raises NotificationProviderError on failure.
        """
        pass


class LogNotificationProvider(NotificationProvider):
    """Provider that only writes the message to the log.

    Used in development and tests in place of a real e-mail gateway.
    """

    provider_name = "log"

    async def send_confirmation(self, booking: Booking, links: dict[str, str]) -> str:
        logger.info(
            f"Confirmation for booking={booking.id} on {booking.date} {booking.time} "
            f"locale={booking.locale} cancel={links.get('cancel', '-')[:40]}"
        )
        return f"log_{uuid4().hex[:16]}"


@dataclass
class NotificationOutcome:
    """Result of a dispatch attempt."""

    enabled: bool
    skipped: bool
    ok: bool
    provider: str | None = None
    message_id: str | None = None
    error: str | None = None

    def as_response(self) -> dict[str, bool]:
        return {"enabled": self.enabled, "skipped": self.skipped, "ok": self.ok}


class NotificationDispatcher:
    """Sends confirmation messages when enabled."""

    def __init__(
        self,
        provider: NotificationProvider | None = None,
        enabled: bool = False,
    ):
        self.provider = provider or LogNotificationProvider()
        self.enabled = enabled

    async def dispatch(self, booking: Booking, links: dict[str, str]) -> NotificationOutcome:
        """Attempt delivery; failures are reported, never raised."""
        if not self.enabled:
            return NotificationOutcome(enabled=False, skipped=True, ok=False)

        try:
            message_id = await self.provider.send_confirmation(booking, links)
        except NotificationProviderError as e:
            logger.warning(f"Confirmation delivery failed for booking={booking.id}: {e}")
            return NotificationOutcome(
                enabled=True,
                skipped=False,
                ok=False,
                provider=self.provider.provider_name,
                error=str(e) or e.__class__.__name__,
            )

        return NotificationOutcome(
            enabled=True,
            skipped=False,
            ok=True,
            provider=self.provider.provider_name,
            message_id=message_id,
        )
