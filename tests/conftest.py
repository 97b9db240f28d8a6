import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient, Response

# Load environment variables from .env file
load_dotenv()

# Tests run against the in-memory store with caching disabled
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["CACHE_ENABLED"] = "false"
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["ENFORCE_STATUS_TRANSITIONS"] = "true"

from clinicflow.dependencies import get_appointment_repository, get_cache_manager  # noqa: E402
from clinicflow.main import app  # noqa: E402
from clinicflow.repositories.memory import InMemoryAppointmentRepository  # noqa: E402

APPOINTMENTS_URL = "/api/v1/appointments"


@pytest.fixture
def repository() -> InMemoryAppointmentRepository:
    """Fresh in-memory appointment store."""
    return InMemoryAppointmentRepository()


@pytest.fixture
def patient(repository: InMemoryAppointmentRepository) -> dict:
    return repository.add_patient("Ana Souza", phone="+5511999990000", email="ana@example.com")


@pytest.fixture
def other_patient(repository: InMemoryAppointmentRepository) -> dict:
    return repository.add_patient("Bruno Lima", phone="+5511988880000", email="bruno@example.com")


@pytest.fixture
def therapist(repository: InMemoryAppointmentRepository) -> dict:
    return repository.add_therapist("Dr. Carla Dias", email="carla@clinic.test")


@pytest.fixture
def other_therapist(repository: InMemoryAppointmentRepository) -> dict:
    return repository.add_therapist("Dr. Diego Rocha", email="diego@clinic.test")


@pytest_asyncio.fixture
async def client(repository: InMemoryAppointmentRepository) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client bound to the in-memory store."""
    app.dependency_overrides[get_appointment_repository] = lambda: repository
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def appointment_payload(patient: dict, therapist: dict) -> Callable[..., dict]:
    """Build a create-appointment body; keyword arguments override fields."""

    def build(start: str, end: str, **overrides: Any) -> dict:
        payload = {
            "patient_id": str(patient["id"]),
            "therapist_id": str(therapist["id"]),
            "start_time": start,
            "end_time": end,
            "type": "Evaluation",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def book(
    client: AsyncClient,
    appointment_payload: Callable[..., dict],
) -> Callable[..., Awaitable[Response]]:
    """POST an appointment for the default patient and therapist."""

    async def post(start: str, end: str, **overrides: Any) -> Response:
        payload = appointment_payload(start, end, **overrides)
        return await client.post(APPOINTMENTS_URL, json=payload)

    return post
