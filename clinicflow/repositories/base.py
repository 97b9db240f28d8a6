"""
Appointment repository port.

Services depend on this protocol, never on a database client, so the
scheduling logic runs unchanged against PostgreSQL or the in-memory store.

Appointment records are plain dicts holding the ``appointments`` columns
(enum values as strings) plus ``patient`` ({id, name, phone, email}) and
``therapist`` ({id, name, email}) summaries, or None when the referenced row
is missing.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from clinicflow.scheduling.overlap import TimeWindow
from clinicflow.schemas.appointments import AppointmentFilters, AppointmentStatus

AppointmentRecord = dict[str, Any]


@runtime_checkable
class AppointmentRepository(Protocol):
    """Persistence contract of the scheduling core."""

    async def get_patient(self, patient_id: UUID) -> dict[str, Any] | None:
        """Patient summary, or None if the patient does not exist."""
        ...

    async def get_therapist(self, therapist_id: UUID) -> dict[str, Any] | None:
        """Therapist summary, or None if the therapist does not exist."""
        ...

    async def get_appointment(self, appointment_id: UUID) -> AppointmentRecord | None:
        ...

    async def find_conflict(
        self,
        window: TimeWindow,
        exclude_appointment_id: UUID | None = None,
    ) -> AppointmentRecord | None:
        """
        Find an active appointment of the therapist overlapping the window.

        Args:
            window: Therapist and half-open interval to test
            exclude_appointment_id: Appointment to ignore (the one being edited)

        Returns:
            Some overlapping appointment, or None
        """
        ...

    async def create_appointment(
        self,
        values: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        """
        Insert an appointment.

        When ``conflict_window`` is given, the conflict check and the insert
        are atomic with respect to other writers.

        Raises:
            OverlapError: If the window overlaps an active appointment
        """
        ...

    async def update_appointment(
        self,
        appointment_id: UUID,
        changes: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        """
        Apply changes to an appointment, with the same atomic conflict check.

        Raises:
            OverlapError: If the new window overlaps another active appointment
        """
        ...

    async def list_appointments(
        self,
        filters: AppointmentFilters,
    ) -> tuple[list[AppointmentRecord], int]:
        """Return one page of matching appointments and the total match count."""
        ...

    async def list_in_range(
        self,
        start: datetime,
        end: datetime,
        statuses: frozenset[AppointmentStatus],
        therapist_id: UUID | None = None,
    ) -> list[AppointmentRecord]:
        """Appointments starting within [start, end], ordered by start time."""
        ...

    async def list_series(self, series_id: str) -> list[AppointmentRecord]:
        """Appointments of a series ordered by session number, then start."""
        ...

    async def clinical_record_flags(
        self,
        appointment_ids: list[UUID],
    ) -> dict[UUID, tuple[bool, bool]]:
        """Map appointment id to (has SOAP note, has assessment)."""
        ...
