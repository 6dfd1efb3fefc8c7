"""Scheduled task for expiring lapsed booking holds.

Usage:
    # Run directly
    python -m app.tasks.expire_holds

    # Or via cron (every minute is plenty)
    * * * * * cd /path/to/project && python -m app.tasks.expire_holds

    # Environment variables:
    DATABASE_URL - PostgreSQL connection string
"""

import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.repositories.booking import BookingRepository
from app.services.expiry import ExpiryService

logger = logging.getLogger(__name__)


async def run_expire_holds_task(database_url: str | None = None) -> dict:
    """Run one expiry sweep.

    Args:
        database_url: Database connection string. Defaults to the configured one.

    Returns:
        Job results summary
    """
    db_url = database_url or settings.database_url

    # Convert sync URL to async if needed
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_factory() as session:
            repository = BookingRepository(session, timeout=settings.db_timeout_seconds)
            expired = await ExpiryService(repository).expire_stale_holds()
            return {"expired": expired}
    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    from app.core.logging import setup_logging

    parser = argparse.ArgumentParser(description="Expire lapsed booking holds")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    setup_logging()

    try:
        results = asyncio.run(run_expire_holds_task(database_url=args.database_url))
        print(f"Job completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
