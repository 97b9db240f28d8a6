"""In-memory appointment repository.

Backs ``STORAGE_BACKEND=memory`` for local development and the test suite.
A single asyncio lock makes each conflict-check-and-write atomic, mirroring
the advisory lock taken by the PostgreSQL repository.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from clinicflow.repositories.base import AppointmentRecord
from clinicflow.scheduling.lifecycle import as_status
from clinicflow.scheduling.overlap import OverlapError, TimeWindow, find_overlapping
from clinicflow.scheduling.pagination import page_offset
from clinicflow.schemas.appointments import (
    AppointmentFilters,
    AppointmentStatus,
    AppointmentType,
    SortField,
    SortOrder,
)

COLUMN_DEFAULTS: dict[str, Any] = {
    "status": AppointmentStatus.SCHEDULED.value,
    "value": None,
    "payment_status": "pending",
    "observations": None,
    "series_id": None,
    "session_number": None,
    "total_sessions": None,
}


class InMemoryAppointmentRepository:
    """Appointment repository keeping every table in dictionaries."""

    def __init__(self) -> None:
        self.patients: dict[UUID, dict[str, Any]] = {}
        self.therapists: dict[UUID, dict[str, Any]] = {}
        self.appointments: dict[UUID, dict[str, Any]] = {}
        self.soap_notes: dict[UUID, list[datetime]] = {}
        self.assessments: dict[UUID, list[datetime]] = {}
        self._lock = asyncio.Lock()

    # Seeding helpers for the externally owned tables

    def add_patient(
        self,
        name: str,
        phone: str | None = None,
        email: str | None = None,
        patient_id: UUID | None = None,
    ) -> dict[str, Any]:
        patient = {"id": patient_id or uuid4(), "name": name, "phone": phone, "email": email}
        self.patients[patient["id"]] = patient
        return dict(patient)

    def add_therapist(
        self,
        name: str,
        email: str | None = None,
        therapist_id: UUID | None = None,
    ) -> dict[str, Any]:
        therapist = {"id": therapist_id or uuid4(), "name": name, "email": email}
        self.therapists[therapist["id"]] = therapist
        return dict(therapist)

    def add_soap_note(self, appointment_id: UUID) -> None:
        self.soap_notes.setdefault(appointment_id, []).append(datetime.now(UTC))

    def add_assessment(self, appointment_id: UUID) -> None:
        self.assessments.setdefault(appointment_id, []).append(datetime.now(UTC))

    def _hydrate(self, row: dict[str, Any]) -> AppointmentRecord:
        record = dict(row)
        patient = self.patients.get(row["patient_id"])
        therapist = self.therapists.get(row["therapist_id"])
        record["patient"] = dict(patient) if patient else None
        record["therapist"] = dict(therapist) if therapist else None
        return record

    async def get_patient(self, patient_id: UUID) -> dict[str, Any] | None:
        patient = self.patients.get(patient_id)
        return dict(patient) if patient else None

    async def get_therapist(self, therapist_id: UUID) -> dict[str, Any] | None:
        therapist = self.therapists.get(therapist_id)
        return dict(therapist) if therapist else None

    async def get_appointment(self, appointment_id: UUID) -> AppointmentRecord | None:
        row = self.appointments.get(appointment_id)
        return self._hydrate(row) if row else None

    async def find_conflict(
        self,
        window: TimeWindow,
        exclude_appointment_id: UUID | None = None,
    ) -> AppointmentRecord | None:
        ordered = sorted(self.appointments.values(), key=lambda row: row["start_time"])
        conflict = find_overlapping(ordered, window, exclude_appointment_id)
        return self._hydrate(dict(conflict)) if conflict else None

    async def create_appointment(
        self,
        values: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        async with self._lock:
            if conflict_window is not None:
                conflict = await self.find_conflict(conflict_window)
                if conflict is not None:
                    raise OverlapError(conflict)

            now = datetime.now(UTC)
            row = {**COLUMN_DEFAULTS, **values, "id": uuid4(), "created_at": now, "updated_at": now}
            self.appointments[row["id"]] = row
            return self._hydrate(row)

    async def update_appointment(
        self,
        appointment_id: UUID,
        changes: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        async with self._lock:
            if conflict_window is not None:
                conflict = await self.find_conflict(conflict_window, appointment_id)
                if conflict is not None:
                    raise OverlapError(conflict)

            row = self.appointments[appointment_id]
            row.update(changes)
            row["updated_at"] = datetime.now(UTC)
            return self._hydrate(row)

    def _matches(self, row: dict[str, Any], filters: AppointmentFilters) -> bool:
        if filters.patient_id and row["patient_id"] != filters.patient_id:
            return False
        if filters.therapist_id and row["therapist_id"] != filters.therapist_id:
            return False
        if filters.status and as_status(row["status"]) != filters.status:
            return False
        if filters.type and AppointmentType(row["type"]) != filters.type:
            return False
        if filters.date_from and row["start_time"] < filters.date_from:
            return False
        if filters.date_to and row["start_time"] > filters.date_to:
            return False
        return True

    def _sort_key(self, sort_by: SortField):
        if sort_by == SortField.PATIENT_NAME:

            def key(row: dict[str, Any]) -> tuple:
                patient = self.patients.get(row["patient_id"])
                return (patient["name"] if patient else "", str(row["id"]))

            return key
        column = sort_by.value
        return lambda row: (row[column], str(row["id"]))

    async def list_appointments(
        self,
        filters: AppointmentFilters,
    ) -> tuple[list[AppointmentRecord], int]:
        matched = [row for row in self.appointments.values() if self._matches(row, filters)]
        matched.sort(
            key=self._sort_key(filters.sort_by),
            reverse=filters.sort_order == SortOrder.DESC,
        )
        offset = page_offset(filters.page, filters.limit)
        page = matched[offset : offset + filters.limit]
        return [self._hydrate(row) for row in page], len(matched)

    async def list_in_range(
        self,
        start: datetime,
        end: datetime,
        statuses: frozenset[AppointmentStatus],
        therapist_id: UUID | None = None,
    ) -> list[AppointmentRecord]:
        rows = [
            row
            for row in self.appointments.values()
            if start <= row["start_time"] <= end
            and as_status(row["status"]) in statuses
            and (therapist_id is None or row["therapist_id"] == therapist_id)
        ]
        rows.sort(key=lambda row: (row["start_time"], str(row["id"])))
        return [self._hydrate(row) for row in rows]

    async def list_series(self, series_id: str) -> list[AppointmentRecord]:
        rows = [row for row in self.appointments.values() if row["series_id"] == series_id]
        rows.sort(
            key=lambda row: (
                row["session_number"] is None,
                row["session_number"] or 0,
                row["start_time"],
            )
        )
        return [self._hydrate(row) for row in rows]

    async def clinical_record_flags(
        self,
        appointment_ids: list[UUID],
    ) -> dict[UUID, tuple[bool, bool]]:
        return {
            appointment_id: (
                bool(self.soap_notes.get(appointment_id)),
                bool(self.assessments.get(appointment_id)),
            )
            for appointment_id in appointment_ids
        }
