"""Clinical record tables read by scheduling for documentation flags."""

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    Table,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

soap_notes = Table(
    "soap_notes",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("appointment_id", UUID(as_uuid=True), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)

assessment_results = Table(
    "assessment_results",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("appointment_id", UUID(as_uuid=True), nullable=True, index=True),
    Column("evaluated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)
