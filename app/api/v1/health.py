"""Health check endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.api.deps import Repository
from app.repositories.booking import StoreUnavailableError

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns service health status",
)
async def health_check() -> HealthResponse:
    """Check if the service is healthy.

    Returns:
        Health status response
    """
    return HealthResponse(status="ok")


@router.get(
    "/db",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Database readiness check",
    description="Round-trips to the booking store; 503 when it is unreachable",
    responses={503: {"model": HealthResponse}},
)
async def database_check(repository: Repository):
    """Check the booking store answers within the configured timeout."""
    try:
        await repository.ping()
    except StoreUnavailableError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthResponse(status="unavailable", database="unreachable").model_dump(),
        )

    return HealthResponse(status="ok", database="connected")
