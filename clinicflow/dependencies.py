"""FastAPI dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends

from clinicflow.config import settings
from clinicflow.core.redis_client import CacheManager, get_redis_client
from clinicflow.database import get_db
from clinicflow.repositories.base import AppointmentRepository
from clinicflow.repositories.memory import InMemoryAppointmentRepository
from clinicflow.repositories.sql import SQLAppointmentRepository
from clinicflow.services.appointment_service import AppointmentService

# Process-wide store used when STORAGE_BACKEND=memory
_memory_repository: InMemoryAppointmentRepository | None = None


def get_memory_repository() -> InMemoryAppointmentRepository:
    """Get or create the in-memory appointment store."""
    global _memory_repository

    if _memory_repository is None:
        _memory_repository = InMemoryAppointmentRepository()

    return _memory_repository


async def get_appointment_repository() -> AsyncGenerator[AppointmentRepository, None]:
    """
    Provide the appointment repository for the configured storage backend.

    Yields:
        Repository bound to a request-scoped database session, or the
        in-memory store
    """
    if settings.storage_backend == "memory":
        yield get_memory_repository()
        return

    async for session in get_db():
        yield SQLAppointmentRepository(session)


def get_cache_manager() -> CacheManager | None:
    """Get the Redis cache manager, or None when caching is disabled."""
    if not settings.cache_enabled:
        return None
    return CacheManager(get_redis_client())


def get_appointment_service(
    repository: Annotated[AppointmentRepository, Depends(get_appointment_repository)],
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> AppointmentService:
    """Build the appointment service for a request."""
    return AppointmentService(repository, cache_manager)


# Type aliases for dependency injection
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
