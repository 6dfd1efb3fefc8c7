"""API router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import admin, availability, bookings, health

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Public booking flow
api_router.include_router(
    availability.router,
    prefix="/availability",
    tags=["availability"],
)

api_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["bookings"],
)

# Admin
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
)
