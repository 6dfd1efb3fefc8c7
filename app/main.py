"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.errors import error_body, validation_error_response
from app.api.v1.router import api_router
from app.booking.results import BookingErrorCode, error_message
from app.core.config import settings
from app.core.logging import setup_logging
from app.db.init_db import init_db
from app.db.session import AsyncSessionLocal
from app.middleware.rate_limit import RateLimitMiddleware
from app.repositories.booking import BookingRepository, StoreUnavailableError
from app.services.expiry import ExpiryService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


async def sweep_expired_holds() -> int | None:
    """Run one expiry sweep.

    Returns the number of holds expired, or None when the sweep failed. A
    failed sweep is logged and left for the next run.
    """
    try:
        async with AsyncSessionLocal() as session:
            repository = BookingRepository(session, timeout=settings.db_timeout_seconds)
            return await ExpiryService(repository).expire_stale_holds()
    except StoreUnavailableError:
        logger.warning("Expiry sweep skipped: store unavailable")
    except Exception:
        logger.exception("Expiry sweep failed")
    return None


async def run_expiry_sweeps(interval_seconds: int) -> None:
    """Expire lapsed holds every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        await sweep_expired_holds()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Clinvetia Booking API (env={settings.env})")

    if settings.init_db_on_startup and settings.is_dev:
        logger.info("Initializing database...")
        await init_db()

    sweeper = None
    if settings.expiry_sweep_interval_seconds > 0:
        logger.info(
            f"Expiry sweeper enabled (every {settings.expiry_sweep_interval_seconds}s)"
        )
        sweeper = asyncio.create_task(
            run_expiry_sweeps(settings.expiry_sweep_interval_seconds)
        )

    yield

    # Shutdown
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

    logger.info("Shutting down Clinvetia Booking API")


# Create FastAPI application
app = FastAPI(
    title="Clinvetia Booking API",
    description="Demo booking slots, holds and confirmations for veterinary clinics",
    version="0.1.0",
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

# Add rate limiting middleware
app.add_middleware(RateLimitMiddleware, enabled=settings.rate_limit_enabled)

# CORS middleware (configure appropriately for production)
if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed input with the INVALID_INPUT envelope."""
    logger.info(f"Invalid input on {request.method} {request.url.path}")
    return validation_error_response(exc)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report unhandled exceptions as 500.

    Store outages are reported as 503 by the services before reaching here.
    """
    logger.exception(f"Unhandled exception: {exc}")

    code = BookingErrorCode.INTERNAL_ERROR

    # Don't expose internal errors in production
    message = error_message(code) if settings.is_prod else str(exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(code, message),
    )


# Include API router
app.include_router(api_router, prefix="/api")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint redirect to docs."""
    return {
        "service": "Clinvetia Booking API",
        "version": "0.1.0",
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
