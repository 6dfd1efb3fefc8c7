"""Async database engine and session factory."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _engine_kwargs(database_url: str) -> dict:
    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    if database_url.startswith("postgresql+asyncpg"):
        # Server-side bound on every statement, in addition to the client timeout
        kwargs["connect_args"] = {"command_timeout": settings.db_timeout_seconds}
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session
