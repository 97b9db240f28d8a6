"""Alembic environment running migrations through the async engine."""

import asyncio

from sqlalchemy.engine import Connection

from alembic import context
from clinicflow.database import DATABASE_URL, engine

config = context.config


def run_migrations_offline() -> None:
    """Emit migration SQL without a database connection."""
    context.configure(url=DATABASE_URL, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations against the configured database."""
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
