"""Patient model definition using SQLAlchemy Core.

Patients are managed by the patient registry; scheduling only reads the
summary columns declared here.
"""

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

patients = Table(
    "patients",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("name", Text, nullable=False, index=True),
    Column("phone", String(20)),
    Column("email", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)
