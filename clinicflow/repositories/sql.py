"""PostgreSQL appointment repository using SQLAlchemy Core."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Select, and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import NotFoundException
from clinicflow.models.appointments import appointments
from clinicflow.models.clinical_records import assessment_results, soap_notes
from clinicflow.models.patients import patients
from clinicflow.models.users import users
from clinicflow.repositories.base import AppointmentRecord
from clinicflow.scheduling.lifecycle import ACTIVE_STATUSES
from clinicflow.scheduling.overlap import OverlapError, TimeWindow
from clinicflow.scheduling.pagination import page_offset
from clinicflow.schemas.appointments import (
    AppointmentFilters,
    AppointmentStatus,
    SortField,
    SortOrder,
)

logger = structlog.get_logger(__name__)

OVERLAP_CONSTRAINT = "appointments_no_overlap"
EXCLUSION_VIOLATION = "23P01"

SORT_COLUMNS = {
    SortField.START_TIME: appointments.c.start_time,
    SortField.CREATED_AT: appointments.c.created_at,
    SortField.PATIENT_NAME: patients.c.name,
}


def _appointment_select() -> Select:
    """Appointment columns joined with patient and therapist summaries."""
    return select(
        appointments,
        patients.c.name.label("patient_name"),
        patients.c.phone.label("patient_phone"),
        patients.c.email.label("patient_email"),
        users.c.name.label("therapist_name"),
        users.c.email.label("therapist_email"),
    ).select_from(
        appointments.outerjoin(patients, appointments.c.patient_id == patients.c.id).outerjoin(
            users, appointments.c.therapist_id == users.c.id
        )
    )


def _to_record(row: Any) -> AppointmentRecord:
    data = dict(row._mapping)
    patient_name = data.pop("patient_name")
    patient_phone = data.pop("patient_phone")
    patient_email = data.pop("patient_email")
    therapist_name = data.pop("therapist_name")
    therapist_email = data.pop("therapist_email")

    data["patient"] = (
        {
            "id": data["patient_id"],
            "name": patient_name,
            "phone": patient_phone,
            "email": patient_email,
        }
        if patient_name is not None
        else None
    )
    data["therapist"] = (
        {"id": data["therapist_id"], "name": therapist_name, "email": therapist_email}
        if therapist_name is not None
        else None
    )
    return data


def _is_overlap_violation(exc: IntegrityError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return sqlstate == EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(exc.orig)


def _db_values(values: dict[str, Any]) -> dict[str, Any]:
    """Numeric columns take Decimal through asyncpg."""
    if values.get("value") is not None:
        values = {**values, "value": Decimal(str(values["value"]))}
    return values


class SQLAppointmentRepository:
    """Appointment repository backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def get_patient(self, patient_id: UUID) -> dict[str, Any] | None:
        stmt = select(patients.c.id, patients.c.name, patients.c.phone, patients.c.email).where(
            patients.c.id == patient_id
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_therapist(self, therapist_id: UUID) -> dict[str, Any] | None:
        stmt = select(users.c.id, users.c.name, users.c.email).where(users.c.id == therapist_id)
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_appointment(self, appointment_id: UUID) -> AppointmentRecord | None:
        stmt = _appointment_select().where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return _to_record(row) if row else None

    async def _reload(self, appointment_id: UUID) -> AppointmentRecord:
        record = await self.get_appointment(appointment_id)
        if record is None:
            raise NotFoundException("Appointment not found")
        return record

    async def find_conflict(
        self,
        window: TimeWindow,
        exclude_appointment_id: UUID | None = None,
    ) -> AppointmentRecord | None:
        conditions = [
            appointments.c.therapist_id == window.therapist_id,
            appointments.c.status.in_([s.value for s in ACTIVE_STATUSES]),
            appointments.c.start_time < window.end,
            appointments.c.end_time > window.start,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = (
            _appointment_select()
            .where(and_(*conditions))
            .order_by(appointments.c.start_time)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return _to_record(row) if row else None

    async def _lock_therapist(self, therapist_id: UUID) -> None:
        """Serialize writers of one therapist's schedule until commit."""
        await self.db.execute(
            select(func.pg_advisory_xact_lock(func.hashtextextended(str(therapist_id), 0)))
        )

    async def create_appointment(
        self,
        values: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        try:
            if conflict_window is not None:
                await self._lock_therapist(conflict_window.therapist_id)
                conflict = await self.find_conflict(conflict_window)
                if conflict is not None:
                    raise OverlapError(conflict)

            stmt = insert(appointments).values(**_db_values(values)).returning(appointments.c.id)
            result = await self.db.execute(stmt)
            appointment_id = result.scalar_one()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if conflict_window is not None and _is_overlap_violation(e):
                logger.warning(
                    "appointment_overlap_constraint_hit",
                    therapist_id=str(conflict_window.therapist_id),
                )
                raise OverlapError(await self.find_conflict(conflict_window)) from e
            raise
        except Exception:
            await self.db.rollback()
            raise

        return await self._reload(appointment_id)

    async def update_appointment(
        self,
        appointment_id: UUID,
        changes: dict[str, Any],
        conflict_window: TimeWindow | None,
    ) -> AppointmentRecord:
        try:
            if conflict_window is not None:
                await self._lock_therapist(conflict_window.therapist_id)
                conflict = await self.find_conflict(conflict_window, appointment_id)
                if conflict is not None:
                    raise OverlapError(conflict)

            stmt = (
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**_db_values(changes), updated_at=datetime.now(UTC))
            )
            await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if conflict_window is not None and _is_overlap_violation(e):
                raise OverlapError(
                    await self.find_conflict(conflict_window, appointment_id)
                ) from e
            raise
        except Exception:
            await self.db.rollback()
            raise

        return await self._reload(appointment_id)

    async def list_appointments(
        self,
        filters: AppointmentFilters,
    ) -> tuple[list[AppointmentRecord], int]:
        conditions = []

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.therapist_id:
            conditions.append(appointments.c.therapist_id == filters.therapist_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.type:
            conditions.append(appointments.c.type == filters.type.value)

        if filters.date_from:
            conditions.append(appointments.c.start_time >= filters.date_from)

        if filters.date_to:
            conditions.append(appointments.c.start_time <= filters.date_to)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(True, *conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        sort_column = SORT_COLUMNS[filters.sort_by]
        if filters.sort_order == SortOrder.DESC:
            order_by = [sort_column.desc(), appointments.c.id.desc()]
        else:
            order_by = [sort_column.asc(), appointments.c.id.asc()]

        stmt = (
            _appointment_select()
            .where(and_(True, *conditions))
            .order_by(*order_by)
            .limit(filters.limit)
            .offset(page_offset(filters.page, filters.limit))
        )
        result = await self.db.execute(stmt)
        return [_to_record(row) for row in result.fetchall()], total

    async def list_in_range(
        self,
        start: datetime,
        end: datetime,
        statuses: frozenset[AppointmentStatus],
        therapist_id: UUID | None = None,
    ) -> list[AppointmentRecord]:
        conditions = [
            appointments.c.start_time >= start,
            appointments.c.start_time <= end,
            appointments.c.status.in_([s.value for s in statuses]),
        ]
        if therapist_id:
            conditions.append(appointments.c.therapist_id == therapist_id)

        stmt = (
            _appointment_select()
            .where(and_(*conditions))
            .order_by(appointments.c.start_time.asc(), appointments.c.id.asc())
        )
        result = await self.db.execute(stmt)
        return [_to_record(row) for row in result.fetchall()]

    async def list_series(self, series_id: str) -> list[AppointmentRecord]:
        stmt = (
            _appointment_select()
            .where(appointments.c.series_id == series_id)
            .order_by(
                appointments.c.session_number.asc().nulls_last(),
                appointments.c.start_time.asc(),
            )
        )
        result = await self.db.execute(stmt)
        return [_to_record(row) for row in result.fetchall()]

    async def clinical_record_flags(
        self,
        appointment_ids: list[UUID],
    ) -> dict[UUID, tuple[bool, bool]]:
        if not appointment_ids:
            return {}

        notes_result = await self.db.execute(
            select(soap_notes.c.appointment_id)
            .where(soap_notes.c.appointment_id.in_(appointment_ids))
            .distinct()
        )
        with_notes = set(notes_result.scalars().all())

        assessments_result = await self.db.execute(
            select(assessment_results.c.appointment_id)
            .where(assessment_results.c.appointment_id.in_(appointment_ids))
            .distinct()
        )
        with_assessments = set(assessments_result.scalars().all())

        return {
            appointment_id: (appointment_id in with_notes, appointment_id in with_assessments)
            for appointment_id in appointment_ids
        }
