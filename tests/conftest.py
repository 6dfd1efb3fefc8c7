"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.deps import get_clock
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.repositories.booking import BookingRepository
from app.services.availability import AvailabilityService
from app.services.booking import BookingService
from app.services.notification import NotificationDispatcher

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

# Monday 2026-02-16, 08:00 in Madrid
MONDAY_MORNING = datetime(2026, 2, 16, 7, 0, tzinfo=timezone.utc)

VALID_CONTACT = {
    "fullName": "Lucía Fernández",
    "email": "lucia@clinica.es",
    "phone": "612345678",
    "clinicName": "Clínica Norte",
    "message": None,
}

VALID_ROI = {"monthlyPatients": 400, "avgTicket": 55, "nonEmpty": True}


class FrozenClock:
    """Controllable clock for services."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(MONDAY_MORNING)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def repository(async_session: AsyncSession) -> BookingRepository:
    return BookingRepository(async_session, timeout=5.0)


@pytest.fixture
def availability_service(repository: BookingRepository, clock: FrozenClock) -> AvailabilityService:
    return AvailabilityService(repository, clock=clock)


@pytest.fixture
def booking_service(repository: BookingRepository, clock: FrozenClock) -> BookingService:
    return BookingService(
        repository,
        notifier=NotificationDispatcher(enabled=False),
        clock=clock,
        public_base_url="https://clinvetia.test",
    )


@pytest.fixture(scope="function")
async def client(
    async_session: AsyncSession, clock: FrozenClock
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create HTTP test client with overridden dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def valid_contact() -> dict:
    return dict(VALID_CONTACT)


@pytest.fixture
def valid_roi() -> dict:
    return dict(VALID_ROI)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN_HEADERS)
