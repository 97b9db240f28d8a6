"""
Calendar projection.

Turns a date and a view granularity into the bounded range to fetch, the
events to draw, the day view's availability slots and summary counters.
All wall-clock arithmetic happens in the clinic timezone.
"""

import calendar
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from clinicflow.core.exceptions import ValidationException
from clinicflow.scheduling.lifecycle import as_status, is_finished
from clinicflow.scheduling.overlap import intervals_overlap
from clinicflow.schemas.appointments import (
    AppointmentStatus,
    AppointmentType,
    CalendarData,
    CalendarEvent,
    CalendarSummary,
    CalendarView,
    DateRange,
    TimeSlot,
)

END_OF_DAY = time(23, 59, 59, 999000)

DEFAULT_COLOR = "#6b7280"  # gray
DEFAULT_BORDER_COLOR = "#1f2937"

TYPE_COLORS: dict[AppointmentType, str] = {
    AppointmentType.EVALUATION: "#3b82f6",  # blue
    AppointmentType.SESSION: "#8b5cf6",  # purple
    AppointmentType.RETURN: "#06b6d4",  # cyan
    AppointmentType.GROUP_CLASS: "#f59e0b",  # amber
    AppointmentType.URGENT: "#ef4444",  # red
    AppointmentType.TELECONSULT: "#10b981",  # green
}

# Status colors take precedence over type colors
STATUS_COLORS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CANCELLED: "#6b7280",
    AppointmentStatus.NO_SHOW: "#ef4444",
    AppointmentStatus.COMPLETED: "#10b981",
    AppointmentStatus.CLOSED: "#10b981",
}

STATUS_BORDER_COLORS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CANCELLED: "#374151",
    AppointmentStatus.NO_SHOW: "#dc2626",
    AppointmentStatus.COMPLETED: "#059669",
    AppointmentStatus.CLOSED: "#059669",
}


def localize(value: datetime, tz: tzinfo) -> datetime:
    """Attach the clinic timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def parse_calendar_date(value: str | None, tz: tzinfo) -> date:
    """
    Parse the calendar anchor date.

    Accepts an ISO date or datetime; datetimes are converted to the clinic
    timezone before taking their date. Defaults to today.

    Raises:
        ValidationException: If the value is not ISO formatted
    """
    if not value:
        return datetime.now(tz).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationException(f"Invalid calendar date: {value}", field="date") from None
    return localize(parsed, tz).astimezone(tz).date()


def compute_range(day: date, view: CalendarView, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Inclusive datetime bounds of the view containing ``day``.

    Weeks start on Sunday. Months run from the first to the last calendar day.
    """
    if view == CalendarView.DAY:
        first, last = day, day
    elif view == CalendarView.WEEK:
        # date.weekday() is Monday=0; shift so Sunday=0
        first = day - timedelta(days=(day.weekday() + 1) % 7)
        last = first + timedelta(days=6)
    else:
        first = day.replace(day=1)
        last = day.replace(day=calendar.monthrange(day.year, day.month)[1])

    return (
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(last, END_OF_DAY, tzinfo=tz),
    )


def generate_time_slots(
    day: date,
    tz: tzinfo,
    start_hour: int = 9,
    end_hour: int = 16,
    interval_minutes: int = 30,
) -> list[TimeSlot]:
    """Slots of ``interval_minutes`` covering [start_hour, end_hour) of ``day``."""
    slots = []
    current = datetime.combine(day, time(start_hour), tzinfo=tz)
    if end_hour >= 24:
        day_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    else:
        day_end = datetime.combine(day, time(end_hour), tzinfo=tz)
    step = timedelta(minutes=interval_minutes)

    while current + step <= day_end:
        slots.append(
            TimeSlot(
                time=current,
                end_time=current + step,
                time_string=current.strftime("%H:%M"),
            )
        )
        current += step
    return slots


def mark_busy_slots(slots: Sequence[TimeSlot], appointments: Sequence[Mapping[str, Any]]) -> None:
    """Flag every slot that intersects one of the appointments."""
    for slot in slots:
        for appointment in appointments:
            if intervals_overlap(
                slot.time, slot.end_time, appointment["start_time"], appointment["end_time"]
            ):
                slot.available = False
                break


def appointment_color(appointment_type: str, status: str) -> str:
    status = as_status(status)
    if status in STATUS_COLORS:
        return STATUS_COLORS[status]
    return TYPE_COLORS.get(AppointmentType(appointment_type), DEFAULT_COLOR)


def appointment_border_color(status: str) -> str:
    return STATUS_BORDER_COLORS.get(as_status(status), DEFAULT_BORDER_COLOR)


def build_event(appointment: Mapping[str, Any]) -> CalendarEvent:
    patient = appointment.get("patient")
    return CalendarEvent(
        id=appointment["id"],
        title=patient["name"] if patient else "",
        start=appointment["start_time"],
        end=appointment["end_time"],
        type=appointment["type"],
        status=appointment["status"],
        patient=patient,
        therapist=appointment.get("therapist"),
        value=appointment.get("value"),
        payment_status=appointment["payment_status"],
        observations=appointment.get("observations"),
        background_color=appointment_color(appointment["type"], appointment["status"]),
        border_color=appointment_border_color(appointment["status"]),
    )


def summarize(
    appointments: Sequence[Mapping[str, Any]],
    slots: Sequence[TimeSlot],
) -> CalendarSummary:
    finished = [a for a in appointments if is_finished(a["status"])]
    busy = sum(1 for slot in slots if not slot.available)
    return CalendarSummary(
        total_appointments=len(appointments),
        scheduled_appointments=sum(
            1 for a in appointments if as_status(a["status"]) == AppointmentStatus.SCHEDULED
        ),
        completed_appointments=len(finished),
        total_revenue=float(sum(a["value"] or 0 for a in finished)),
        busy_slots=busy,
        available_slots=len(slots) - busy,
    )


def project(
    day: date,
    view: CalendarView,
    appointments: Sequence[Mapping[str, Any]],
    tz: tzinfo,
    start_hour: int = 9,
    end_hour: int = 16,
    interval_minutes: int = 30,
) -> CalendarData:
    """
    Build the calendar payload from the appointments fetched for the range.

    Args:
        day: Anchor date of the view
        view: Granularity
        appointments: Visible appointments in the range, ordered by start
        tz: Clinic timezone

    Returns:
        Events, day-view slots, summary and the range bounds
    """
    range_start, range_end = compute_range(day, view, tz)

    slots: list[TimeSlot] = []
    if view == CalendarView.DAY:
        slots = generate_time_slots(day, tz, start_hour, end_hour, interval_minutes)
        mark_busy_slots(slots, appointments)

    return CalendarData(
        events=[build_event(a) for a in appointments],
        time_slots=slots,
        summary=summarize(appointments, slots),
        date_range=DateRange(start=range_start, end=range_end),
    )
