"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

# The no-overlap exclusion constraint (appointments_no_overlap) needs the
# btree_gist extension and lives in alembic/versions/001.
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # References (owned by patient and staff management)
    Column("patient_id", UUID(as_uuid=True), nullable=False),
    Column("therapist_id", UUID(as_uuid=True), nullable=False),
    # Time window, half-open [start_time, end_time)
    Column("start_time", TIMESTAMP(timezone=True), nullable=False),
    Column("end_time", TIMESTAMP(timezone=True), nullable=False),
    # Classification
    Column("type", Text, nullable=False),
    Column("status", Text, nullable=False, server_default="Scheduled"),
    # Billing snapshot
    Column("value", Numeric(10, 2), nullable=True),
    Column("payment_status", Text, nullable=False, server_default="pending"),
    Column("observations", Text, nullable=True),
    # Treatment plan
    Column("series_id", Text, nullable=True),
    Column("session_number", Integer, nullable=True),
    Column("total_sessions", Integer, nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint(
        "type IN ('Evaluation', 'Session', 'Return', 'GroupClass', 'Urgent', 'Teleconsult')",
        name="appointments_type_check",
    ),
    CheckConstraint(
        "status IN ('Scheduled', 'Completed', 'Closed', 'Cancelled', 'NoShow')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('paid', 'pending')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint("start_time < end_time", name="appointments_time_window_check"),
    CheckConstraint(
        "session_number IS NULL OR total_sessions IS NULL OR session_number <= total_sessions",
        name="appointments_session_number_check",
    ),
    Index("appointments_patient_id_idx", "patient_id"),
    Index("appointments_therapist_id_idx", "therapist_id"),
    Index("appointments_start_time_idx", "start_time"),
    Index("appointments_series_id_idx", "series_id"),
)
