"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from clinicflow.config import settings
from clinicflow.core.redis_client import check_redis_connection
from clinicflow.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Detailed health check response model."""

    storage_backend: str
    database: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Detailed health check with storage and Redis status.

    Redis only matters when caching is enabled; a disabled cache reports
    "disabled" and does not degrade the service.

    Returns:
        Detailed health status including dependencies
    """
    db_healthy = await check_database_connection()
    if settings.cache_enabled:
        redis_healthy = await check_redis_connection()
        redis_state = "healthy" if redis_healthy else "unhealthy"
    else:
        redis_healthy = True
        redis_state = "disabled"

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
        database="healthy" if db_healthy else "unhealthy",
        redis=redis_state,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
