"""Create scheduling tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create patients, users, appointments and clinical record tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')
    # Needed to mix equality on therapist_id with range overlap in one GiST index
    op.execute('CREATE EXTENSION IF NOT EXISTS "btree_gist"')

    op.create_table(
        "patients",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("email", sa.Text()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_index("ix_patients_name", "patients", ["name"])

    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'Therapist'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "appointments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "therapist_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_time", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_time", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="Scheduled"),
        sa.Column("value", sa.Numeric(10, 2), nullable=True),
        sa.Column("payment_status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("series_id", sa.Text(), nullable=True),
        sa.Column("session_number", sa.Integer(), nullable=True),
        sa.Column("total_sessions", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.CheckConstraint(
            "type IN ('Evaluation', 'Session', 'Return', 'GroupClass', 'Urgent', 'Teleconsult')",
            name="appointments_type_check",
        ),
        sa.CheckConstraint(
            "status IN ('Scheduled', 'Completed', 'Closed', 'Cancelled', 'NoShow')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('paid', 'pending')",
            name="appointments_payment_status_check",
        ),
        sa.CheckConstraint("start_time < end_time", name="appointments_time_window_check"),
        sa.CheckConstraint(
            "session_number IS NULL OR total_sessions IS NULL "
            "OR session_number <= total_sessions",
            name="appointments_session_number_check",
        ),
    )
    op.create_index("appointments_patient_id_idx", "appointments", ["patient_id"])
    op.create_index("appointments_therapist_id_idx", "appointments", ["therapist_id"])
    op.create_index("appointments_start_time_idx", "appointments", ["start_time"])
    op.create_index("appointments_series_id_idx", "appointments", ["series_id"])

    # A therapist can never hold two active appointments over intersecting
    # half-open windows.
    op.execute(
        """
        ALTER TABLE appointments
        ADD CONSTRAINT appointments_no_overlap
        EXCLUDE USING gist (
            therapist_id WITH =,
            tstzrange(start_time, end_time, '[)') WITH &&
        )
        WHERE (status IN ('Scheduled', 'Completed'));
    """
    )

    op.create_table(
        "soap_notes",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "appointment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("appointments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_index("ix_soap_notes_appointment_id", "soap_notes", ["appointment_id"])

    op.create_table(
        "assessment_results",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "appointment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("appointments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "evaluated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_index(
        "ix_assessment_results_appointment_id", "assessment_results", ["appointment_id"]
    )


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_table("assessment_results")
    op.drop_table("soap_notes")
    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap")
    op.drop_table("appointments")
    op.drop_table("users")
    op.drop_table("patients")
