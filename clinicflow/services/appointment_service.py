"""Appointment service for business logic."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog

from clinicflow.config import settings
from clinicflow.core.exceptions import ConflictException, NotFoundException, ValidationException
from clinicflow.core.redis_client import CacheManager
from clinicflow.repositories.base import AppointmentRecord, AppointmentRepository
from clinicflow.scheduling import calendar_view
from clinicflow.scheduling.lifecycle import CALENDAR_STATUSES, ensure_transition, is_active
from clinicflow.scheduling.overlap import OverlapError, TimeWindow, describe_conflict
from clinicflow.scheduling.pagination import build_pagination, duration_minutes
from clinicflow.scheduling.series import summarize_series, validate_series
from clinicflow.schemas.appointments import (
    AppointmentCreate,
    AppointmentDetail,
    AppointmentFilters,
    AppointmentListItem,
    AppointmentListResponse,
    AppointmentMetrics,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    CalendarData,
    CalendarView,
    SeriesResponse,
)

logger = structlog.get_logger(__name__)

# Fields that cannot be cleared with an explicit null
REQUIRED_FIELDS = frozenset(
    {
        "patient_id",
        "therapist_id",
        "start_time",
        "end_time",
        "type",
        "status",
        "payment_status",
    }
)


def _plain(value: Any) -> Any:
    """Enum members are stored by value."""
    return getattr(value, "value", value)


class AppointmentService:
    """Service for scheduling appointments."""

    CALENDAR_CACHE_PREFIX = "appointments:calendar"

    def __init__(
        self,
        repository: AppointmentRepository,
        cache_manager: CacheManager | None = None,
    ):
        """Initialize service with a repository and optional cache manager."""
        self.repository = repository
        self.cache = cache_manager
        self.tz = settings.clinic_tz

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_response(self, record: AppointmentRecord) -> AppointmentResponse:
        return AppointmentResponse.model_validate(
            {**record, "duration": duration_minutes(record["start_time"], record["end_time"])}
        )

    def _conflict(self, error: OverlapError) -> ConflictException:
        conflicting = error.conflicting
        details = None
        if conflicting is not None:
            details = {
                "appointment_id": str(conflicting["id"]),
                "start_time": conflicting["start_time"].isoformat(),
                "end_time": conflicting["end_time"].isoformat(),
            }
        return ConflictException(describe_conflict(conflicting, self.tz), details=details)

    async def _ensure_patient(self, patient_id: UUID) -> None:
        if await self.repository.get_patient(patient_id) is None:
            raise NotFoundException("Patient not found")

    async def _ensure_therapist(self, therapist_id: UUID) -> None:
        if await self.repository.get_therapist(therapist_id) is None:
            raise NotFoundException("Therapist not found")

    async def _get_record(self, appointment_id: UUID) -> AppointmentRecord:
        record = await self.repository.get_appointment(appointment_id)
        if record is None:
            raise NotFoundException("Appointment not found")
        return record

    def _calendar_cache_key(self, day: date, view: CalendarView, therapist_id: UUID | None) -> str:
        return f"{self.CALENDAR_CACHE_PREFIX}:{view.value}:{day.isoformat()}:{therapist_id or 'all'}"

    def _invalidate_calendar(self) -> None:
        if self.cache:
            self.cache.delete_pattern(f"{self.CALENDAR_CACHE_PREFIX}:*")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create a new appointment.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment with its duration

        Raises:
            ValidationException: If the time window or series numbering is invalid
            NotFoundException: If the patient or therapist does not exist
            ConflictException: If the therapist is already booked in the window
        """
        start = calendar_view.localize(data.start_time, self.tz)
        end = calendar_view.localize(data.end_time, self.tz)
        if end <= start:
            raise ValidationException("End time must be after start time", field="end_time")

        validate_series(data.session_number, data.total_sessions)

        await self._ensure_patient(data.patient_id)
        await self._ensure_therapist(data.therapist_id)

        values = {
            "patient_id": data.patient_id,
            "therapist_id": data.therapist_id,
            "start_time": start,
            "end_time": end,
            "type": data.type.value,
            "status": data.status.value,
            "value": data.value,
            "payment_status": data.payment_status.value,
            "observations": data.observations,
            "series_id": data.series_id,
            "session_number": data.session_number,
            "total_sessions": data.total_sessions,
        }
        # Inactive appointments never occupy the therapist's time
        window = TimeWindow(data.therapist_id, start, end) if is_active(data.status) else None

        try:
            record = await self.repository.create_appointment(values, window)
        except OverlapError as e:
            logger.info(
                "appointment_conflict",
                therapist_id=str(data.therapist_id),
                start_time=start.isoformat(),
                end_time=end.isoformat(),
            )
            raise self._conflict(e) from e

        logger.info(
            "appointment_created",
            appointment_id=str(record["id"]),
            therapist_id=str(data.therapist_id),
            series_id=data.series_id,
        )
        self._invalidate_calendar()
        return self._to_response(record)

    async def get_appointment(self, appointment_id: UUID) -> AppointmentDetail:
        """
        Get appointment by ID with derived metrics.

        Raises:
            NotFoundException: If appointment not found
        """
        record = await self._get_record(appointment_id)
        flags = await self.repository.clinical_record_flags([appointment_id])
        has_note, has_assessment = flags.get(appointment_id, (False, False))

        now = datetime.now(self.tz)
        start = record["start_time"]
        response = self._to_response(record)
        metrics = AppointmentMetrics(
            duration=response.duration,
            is_today=start.astimezone(self.tz).date() == now.date(),
            is_past=start < now,
            is_future=start > now,
            has_documentation=has_note,
            has_assessments=has_assessment,
        )
        return AppointmentDetail(**response.model_dump(), metrics=metrics)

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering, sorting and pagination.

        Args:
            filters: Filter, sort and pagination parameters

        Returns:
            One page of appointments with pagination metadata
        """
        updates: dict[str, Any] = {}
        if filters.date_from:
            updates["date_from"] = calendar_view.localize(filters.date_from, self.tz)
        if filters.date_to:
            updates["date_to"] = calendar_view.localize(filters.date_to, self.tz)
        if updates:
            filters = filters.model_copy(update=updates)

        records, total = await self.repository.list_appointments(filters)
        flags = await self.repository.clinical_record_flags([r["id"] for r in records])

        items = []
        for record in records:
            has_note, has_assessment = flags.get(record["id"], (False, False))
            items.append(
                AppointmentListItem(
                    **self._to_response(record).model_dump(),
                    has_soap_note=has_note,
                    has_assessment=has_assessment,
                )
            )

        return AppointmentListResponse(
            data=items,
            pagination=build_pagination(filters.page, filters.limit, total),
        )

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Update an existing appointment.

        Raises:
            NotFoundException: If the appointment, patient or therapist is missing
            ValidationException: If the result breaks a scheduling rule
            ConflictException: If the new window overlaps another booking
        """
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in REQUIRED_FIELDS
        }
        return await self._apply_changes(appointment_id, changes)

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """Move an appointment through its lifecycle."""
        changes: dict[str, Any] = {"status": data.status}
        if data.observations:
            changes["observations"] = data.observations
        return await self._apply_changes(appointment_id, changes)

    async def _apply_changes(
        self,
        appointment_id: UUID,
        changes: dict[str, Any],
    ) -> AppointmentResponse:
        existing = await self._get_record(appointment_id)
        changes = {field: _plain(value) for field, value in changes.items()}

        for field in ("start_time", "end_time"):
            if field in changes:
                changes[field] = calendar_view.localize(changes[field], self.tz)

        merged = {**existing, **changes}

        if "status" in changes and settings.enforce_status_transitions:
            ensure_transition(existing["status"], changes["status"])

        if merged["end_time"] <= merged["start_time"]:
            raise ValidationException("End time must be after start time", field="end_time")

        validate_series(merged["session_number"], merged["total_sessions"])

        if changes.get("patient_id", existing["patient_id"]) != existing["patient_id"]:
            await self._ensure_patient(changes["patient_id"])
        if changes.get("therapist_id", existing["therapist_id"]) != existing["therapist_id"]:
            await self._ensure_therapist(changes["therapist_id"])

        window = None
        if is_active(merged["status"]):
            window_moved = any(
                merged[field] != existing[field]
                for field in ("start_time", "end_time", "therapist_id")
            )
            reactivated = not is_active(existing["status"])
            if window_moved or reactivated:
                window = TimeWindow(merged["therapist_id"], merged["start_time"], merged["end_time"])

        try:
            record = await self.repository.update_appointment(appointment_id, changes, window)
        except OverlapError as e:
            logger.info("appointment_conflict", appointment_id=str(appointment_id))
            raise self._conflict(e) from e

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(changes),
            status=record["status"],
        )
        self._invalidate_calendar()
        return self._to_response(record)

    async def get_calendar(
        self,
        day: date,
        view: CalendarView,
        therapist_id: UUID | None = None,
    ) -> CalendarData:
        """
        Project appointments onto a day, week or month calendar.

        Args:
            day: Anchor date in the clinic timezone
            view: Calendar granularity
            therapist_id: Optional therapist filter

        Returns:
            Events, day-view time slots, summary and date range
        """
        cache_key = self._calendar_cache_key(day, view, therapist_id)
        if self.cache and settings.calendar_cache_ttl:
            cached = self.cache.get_json(cache_key)
            if cached:
                return CalendarData.model_validate(cached)

        start, end = calendar_view.compute_range(day, view, self.tz)
        records = await self.repository.list_in_range(start, end, CALENDAR_STATUSES, therapist_id)

        data = calendar_view.project(
            day,
            view,
            records,
            self.tz,
            start_hour=settings.workday_start_hour,
            end_hour=settings.workday_end_hour,
            interval_minutes=settings.slot_minutes,
        )

        if self.cache and settings.calendar_cache_ttl:
            self.cache.set_json(
                cache_key, data.model_dump(mode="json"), ttl=settings.calendar_cache_ttl
            )
        return data

    async def get_series(self, series_id: str) -> SeriesResponse:
        """List the appointments of a recurring treatment plan."""
        records = await self.repository.list_series(series_id)
        return SeriesResponse(
            data=[self._to_response(record) for record in records],
            summary=summarize_series(series_id, records),
        )
