"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AppointmentType(str, Enum):
    """Appointment type enumeration."""

    EVALUATION = "Evaluation"
    SESSION = "Session"
    RETURN = "Return"
    GROUP_CLASS = "GroupClass"
    URGENT = "Urgent"
    TELECONSULT = "Teleconsult"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PAID = "paid"
    PENDING = "pending"


class CalendarView(str, Enum):
    """Calendar granularity."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SortField(str, Enum):
    """Sortable listing columns."""

    START_TIME = "start_time"
    CREATED_AT = "created_at"
    PATIENT_NAME = "patient_name"


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class CamelModel(BaseModel):
    """Base for payloads rendered with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatientSummary(BaseModel):
    """Patient projection embedded in appointment payloads."""

    id: UUID
    name: str
    phone: str | None = None
    email: str | None = None


class TherapistSummary(BaseModel):
    """Therapist projection embedded in appointment payloads."""

    id: UUID
    name: str
    email: str | None = None


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    start_time: datetime
    end_time: datetime
    type: AppointmentType
    value: float | None = Field(None, gt=0)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    observations: str | None = Field(None, max_length=2000)
    series_id: str | None = Field(None, min_length=1, max_length=100)
    session_number: int | None = Field(None, gt=0)
    total_sessions: int | None = Field(None, gt=0)

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: datetime, info: Any) -> datetime:
        """Validate end time is after start time."""
        start = info.data.get("start_time")
        if start is not None and (start.tzinfo is None) == (v.tzinfo is None) and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AppointmentCreate(AppointmentBase):
    """Schema for creating a new appointment."""

    patient_id: UUID
    therapist_id: UUID
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment.

    Unset fields are left untouched; an explicit null clears the optional ones.
    """

    patient_id: UUID | None = None
    therapist_id: UUID | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    type: AppointmentType | None = None
    status: AppointmentStatus | None = None
    value: float | None = Field(None, gt=0)
    payment_status: PaymentStatus | None = None
    observations: str | None = Field(None, max_length=2000)
    series_id: str | None = Field(None, min_length=1, max_length=100)
    session_number: int | None = Field(None, gt=0)
    total_sessions: int | None = Field(None, gt=0)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    observations: str | None = Field(None, max_length=2000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    therapist_id: UUID
    patient: PatientSummary | None = None
    therapist: TherapistSummary | None = None
    start_time: datetime
    end_time: datetime
    type: AppointmentType
    status: AppointmentStatus
    value: float | None = None
    payment_status: PaymentStatus
    observations: str | None = None
    series_id: str | None = None
    session_number: int | None = None
    total_sessions: int | None = None
    created_at: datetime
    updated_at: datetime | None = None
    duration: int

    model_config = ConfigDict(from_attributes=True)


class AppointmentListItem(AppointmentResponse):
    """Listing row with documentation flags."""

    has_soap_note: bool = False
    has_assessment: bool = False


class AppointmentMetrics(CamelModel):
    """Derived facts about a single appointment."""

    duration: int
    is_today: bool
    is_past: bool
    is_future: bool
    has_documentation: bool
    has_assessments: bool


class AppointmentDetail(AppointmentResponse):
    """Single appointment with derived metrics."""

    metrics: AppointmentMetrics


class AppointmentEnvelope(BaseModel):
    """Single-appointment response envelope."""

    success: bool = True
    data: AppointmentResponse


class AppointmentDetailEnvelope(BaseModel):
    """Appointment detail response envelope."""

    success: bool = True
    data: AppointmentDetail


class PaginationMeta(CamelModel):
    """Pagination block of listing responses."""

    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    success: bool = True
    data: list[AppointmentListItem]
    pagination: PaginationMeta


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering, sorting and pagination."""

    patient_id: UUID | None = None
    therapist_id: UUID | None = None
    status: AppointmentStatus | None = None
    type: AppointmentType | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: SortField = SortField.START_TIME
    sort_order: SortOrder = SortOrder.ASC
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class TimeSlot(CamelModel):
    """Fixed-width availability window of the day view."""

    time: datetime
    end_time: datetime
    time_string: str
    available: bool = True


class CalendarEvent(CamelModel):
    """Appointment rendered for a calendar widget."""

    id: UUID
    title: str
    start: datetime
    end: datetime
    type: AppointmentType
    status: AppointmentStatus
    patient: PatientSummary | None = None
    therapist: TherapistSummary | None = None
    value: float | None = None
    payment_status: PaymentStatus
    observations: str | None = None
    background_color: str
    border_color: str
    text_color: str = "#ffffff"


class CalendarSummary(CamelModel):
    """Aggregates over the projected appointments."""

    total_appointments: int = 0
    scheduled_appointments: int = 0
    completed_appointments: int = 0
    total_revenue: float = 0.0
    busy_slots: int = 0
    available_slots: int = 0


class DateRange(CamelModel):
    """Inclusive bounds of a calendar projection."""

    start: datetime
    end: datetime


class CalendarData(CamelModel):
    """Calendar projection payload."""

    events: list[CalendarEvent]
    time_slots: list[TimeSlot]
    summary: CalendarSummary
    date_range: DateRange


class CalendarResponse(BaseModel):
    """Calendar response envelope."""

    success: bool = True
    data: CalendarData


class SeriesSummary(CamelModel):
    """Progress of a recurring treatment plan."""

    series_id: str
    total_sessions: int | None = None
    appointment_count: int
    scheduled_sessions: int
    completed_sessions: int


class SeriesResponse(BaseModel):
    """Series listing response envelope."""

    success: bool = True
    data: list[AppointmentResponse]
    summary: SeriesSummary
