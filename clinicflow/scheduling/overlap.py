"""
Overlap detection.

Appointments occupy half-open intervals [start, end): two appointments
conflict when each starts before the other ends, so back-to-back bookings
(one ending exactly when the next starts) never conflict. Only active
appointments (Scheduled, Completed) of the same therapist are considered.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, tzinfo
from typing import Any, NamedTuple
from uuid import UUID

from clinicflow.scheduling.lifecycle import is_active


class TimeWindow(NamedTuple):
    """A therapist's candidate booking window."""

    therapist_id: UUID
    start: datetime
    end: datetime


class OverlapError(Exception):
    """Raised by repositories when a write would double-book a therapist."""

    def __init__(self, conflicting: Mapping[str, Any] | None):
        self.conflicting = conflicting
        super().__init__("Appointment overlaps an active appointment")


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open interval intersection test."""
    return a_start < b_end and b_start < a_end


def find_overlapping(
    appointments: Iterable[Mapping[str, Any]],
    window: TimeWindow,
    exclude_appointment_id: UUID | None = None,
) -> Mapping[str, Any] | None:
    """
    Return the first active appointment that overlaps the window.

    Args:
        appointments: Candidate appointment records
        window: Therapist and interval being booked
        exclude_appointment_id: Appointment to ignore (the one being edited)

    Returns:
        The conflicting appointment, or None
    """
    for appointment in appointments:
        if appointment["therapist_id"] != window.therapist_id:
            continue
        if exclude_appointment_id is not None and appointment["id"] == exclude_appointment_id:
            continue
        if not is_active(appointment["status"]):
            continue
        if intervals_overlap(
            appointment["start_time"], appointment["end_time"], window.start, window.end
        ):
            return appointment
    return None


def describe_conflict(conflicting: Mapping[str, Any] | None, tz: tzinfo) -> str:
    """Human-readable description of the booking that blocks a window."""
    if conflicting is None:
        return "The therapist already has an appointment in this time window"

    patient = conflicting.get("patient") or {}
    patient_name = patient.get("name") or "another patient"
    start = conflicting["start_time"].astimezone(tz).strftime("%H:%M")
    end = conflicting["end_time"].astimezone(tz).strftime("%H:%M")
    return f"An appointment with {patient_name} already exists from {start}–{end}"
