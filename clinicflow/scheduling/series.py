"""Recurring treatment plans (series) numbering."""

from collections.abc import Mapping, Sequence
from typing import Any

from clinicflow.core.exceptions import ValidationException
from clinicflow.scheduling.lifecycle import as_status, is_finished
from clinicflow.schemas.appointments import AppointmentStatus, SeriesSummary


def validate_series(session_number: int | None, total_sessions: int | None) -> None:
    """
    Check session numbering of a series appointment.

    The numbers are advisory: either may be given alone. Only a session
    number beyond the plan's total is rejected.

    Raises:
        ValidationException: If session_number > total_sessions
    """
    if session_number is None or total_sessions is None:
        return
    if session_number > total_sessions:
        raise ValidationException(
            f"Session number {session_number} exceeds total sessions {total_sessions}",
            field="session_number",
        )


def summarize_series(series_id: str, appointments: Sequence[Mapping[str, Any]]) -> SeriesSummary:
    totals = [a["total_sessions"] for a in appointments if a.get("total_sessions")]
    return SeriesSummary(
        series_id=series_id,
        total_sessions=max(totals) if totals else None,
        appointment_count=len(appointments),
        scheduled_sessions=sum(
            1 for a in appointments if as_status(a["status"]) == AppointmentStatus.SCHEDULED
        ),
        completed_sessions=sum(1 for a in appointments if is_finished(a["status"])),
    )
