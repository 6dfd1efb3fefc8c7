"""Pydantic schemas for request/response validation."""

from app.schemas.booking import (
    AvailabilityQuery,
    CancelBookingRequest,
    ConfirmBookingRequest,
    ContactIn,
    CreateHoldRequest,
)

__all__ = [
    "AvailabilityQuery",
    "CreateHoldRequest",
    "ContactIn",
    "ConfirmBookingRequest",
    "CancelBookingRequest",
]
