"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicflow.config import settings
from clinicflow.dependencies import AppointmentServiceDep
from clinicflow.scheduling.calendar_view import parse_calendar_date
from clinicflow.schemas.appointments import (
    AppointmentCreate,
    AppointmentDetailEnvelope,
    AppointmentEnvelope,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentType,
    AppointmentUpdate,
    CalendarResponse,
    CalendarView,
    SeriesResponse,
    SortField,
    SortOrder,
)

router = APIRouter()


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    service: AppointmentServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    patient_id: UUID | None = Query(None),
    therapist_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    type_filter: AppointmentType | None = Query(None, alias="type"),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    sort_by: SortField = Query(SortField.START_TIME, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.ASC, alias="sortOrder"),
) -> AppointmentListResponse:
    """
    List appointments with filtering, sorting and pagination.

    Args:
        service: Appointment service
        page: Page number (1-based)
        limit: Items per page
        patient_id: Filter by patient
        therapist_id: Filter by therapist
        status_filter: Filter by status
        type_filter: Filter by appointment type
        date_from: Earliest start time
        date_to: Latest start time
        sort_by: Sort column
        sort_order: Sort direction

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        patient_id=patient_id,
        therapist_id=therapist_id,
        status=status_filter,
        type=type_filter,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return await service.list_appointments(filters)


@router.post(
    "",
    response_model=AppointmentEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    service: AppointmentServiceDep,
) -> AppointmentEnvelope:
    """
    Create a new appointment.

    Args:
        data: Appointment creation data
        service: Appointment service

    Returns:
        Created appointment

    Raises:
        HTTPException: 404 for unknown patient/therapist, 409 on a schedule conflict
    """
    return AppointmentEnvelope(data=await service.create_appointment(data))


@router.get(
    "/calendar",
    response_model=CalendarResponse,
    status_code=status.HTTP_200_OK,
    summary="Calendar projection",
)
async def get_calendar(
    service: AppointmentServiceDep,
    date: str | None = Query(None, description="ISO date or datetime, defaults to today"),
    therapist_id: UUID | None = Query(None),
    view: CalendarView = Query(CalendarView.DAY),
) -> CalendarResponse:
    """
    Get appointments laid out for a day, week or month calendar.

    Args:
        service: Appointment service
        date: Anchor date of the view
        therapist_id: Optional therapist filter
        view: Calendar granularity

    Returns:
        Events, day-view time slots, summary and the covered date range
    """
    day = parse_calendar_date(date, settings.clinic_tz)
    return CalendarResponse(data=await service.get_calendar(day, view, therapist_id))


@router.get(
    "/series/{series_id}",
    response_model=SeriesResponse,
    status_code=status.HTTP_200_OK,
    summary="List a treatment series",
)
async def get_series(series_id: str, service: AppointmentServiceDep) -> SeriesResponse:
    """List the sessions of a recurring treatment plan in session order."""
    return await service.get_series(series_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentDetailEnvelope,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    service: AppointmentServiceDep,
) -> AppointmentDetailEnvelope:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        service: Appointment service

    Returns:
        Appointment details with metrics
    """
    return AppointmentDetailEnvelope(data=await service.get_appointment(appointment_id))


@router.put(
    "/{appointment_id}",
    response_model=AppointmentEnvelope,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    service: AppointmentServiceDep,
) -> AppointmentEnvelope:
    """
    Update an existing appointment.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        service: Appointment service

    Returns:
        Updated appointment
    """
    return AppointmentEnvelope(data=await service.update_appointment(appointment_id, data))


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentEnvelope,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    service: AppointmentServiceDep,
) -> AppointmentEnvelope:
    """
    Update appointment status (complete, close, cancel, no-show).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        service: Appointment service

    Returns:
        Updated appointment
    """
    return AppointmentEnvelope(
        data=await service.update_appointment_status(appointment_id, data)
    )
