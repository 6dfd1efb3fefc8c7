"""Hold expiry sweeper.

Holds expire lazily: every read treats a lapsed hold as free. The sweeper
only materialises that state so stored records stop carrying a slot key
they no longer own.
"""

import logging
from datetime import datetime
from typing import Callable

from app.core.logging import booking_events
from app.db.base import utc_now
from app.repositories.booking import BookingRepository

logger = logging.getLogger(__name__)


class ExpiryService:
    """Service for expiring lapsed holds in bulk."""

    def __init__(
        self,
        repository: BookingRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.clock = clock

    async def expire_stale_holds(self, now: datetime | None = None) -> int:
        """Mark every hold that lapsed at or before ``now`` as expired.

        Returns the number of records changed. Raises StoreUnavailableError
        when the store fails; a later run picks up what this one missed.
        """
        now = now or self.clock()
        count = await self.repository.expire_stale_holds(now)

        if count:
            booking_events.log("holds_expired", None, {"count": count})
        logger.info(f"Expiry sweep complete: expired={count} at={now.isoformat()}")

        return count
