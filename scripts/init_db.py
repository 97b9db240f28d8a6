"""Script to initialize a development database without Alembic."""

import asyncio

from sqlalchemy import text

from clinicflow.database import engine
from clinicflow.models.appointments import metadata as appointments_metadata
from clinicflow.models.clinical_records import metadata as clinical_records_metadata
from clinicflow.models.patients import metadata as patients_metadata
from clinicflow.models.users import metadata as users_metadata

NO_OVERLAP_CONSTRAINT = """
    ALTER TABLE appointments
    ADD CONSTRAINT appointments_no_overlap
    EXCLUDE USING gist (
        therapist_id WITH =,
        tstzrange(start_time, end_time, '[)') WITH &&
    )
    WHERE (status IN ('Scheduled', 'Completed'))
"""


async def init_db() -> None:
    """Create extensions, all tables and the no-overlap constraint."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))

        for metadata in (
            patients_metadata,
            users_metadata,
            appointments_metadata,
            clinical_records_metadata,
        ):
            await conn.run_sync(metadata.create_all)

        exists = await conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = 'appointments_no_overlap'")
        )
        if exists.first() is None:
            await conn.execute(text(NO_OVERLAP_CONSTRAINT))

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
