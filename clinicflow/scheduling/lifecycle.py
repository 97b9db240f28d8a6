"""Appointment lifecycle.

Scheduled is the initial state. From there an appointment is completed (and
later closed), cancelled, or marked as a no-show. Closed, Cancelled and NoShow
are terminal.
"""

from clinicflow.core.exceptions import ValidationException
from clinicflow.schemas.appointments import AppointmentStatus

# Statuses that occupy the therapist's time and block new bookings
ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED})

# Statuses shown on the calendar
CALENDAR_STATUSES = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED, AppointmentStatus.CLOSED}
)

# Statuses that count as attended (and billable)
FINISHED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CLOSED})

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.CLOSED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset({AppointmentStatus.CLOSED}),
    AppointmentStatus.CLOSED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def as_status(value: str | AppointmentStatus) -> AppointmentStatus:
    """Coerce a stored status value to the enum."""
    return AppointmentStatus(value)


def is_active(status: str | AppointmentStatus) -> bool:
    """Whether an appointment in this status blocks the therapist's time."""
    return as_status(status) in ACTIVE_STATUSES


def is_finished(status: str | AppointmentStatus) -> bool:
    return as_status(status) in FINISHED_STATUSES


def can_transition(current: str | AppointmentStatus, target: str | AppointmentStatus) -> bool:
    """Rewriting the current status is always allowed."""
    current, target = as_status(current), as_status(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: str | AppointmentStatus, target: str | AppointmentStatus) -> None:
    """
    Validate a status change.

    Raises:
        ValidationException: If the lifecycle does not allow the change
    """
    if not can_transition(current, target):
        raise ValidationException(
            f"Cannot change appointment status from {as_status(current).value} "
            f"to {as_status(target).value}",
            field="status",
        )
