"""Alembic environment for the content database.

Runs against the async engine in online mode and emits plain SQL in
offline mode.  The database URL always comes from ``electrolab.config``
so migrations and the API share one source of credentials.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from electrolab.config import settings
from electrolab.database import Base

# Registers every table on Base.metadata for autogenerate.
import electrolab.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def _configure_kwargs() -> dict:
    # SQLite cannot ALTER most constraints in place; batch mode recreates tables.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": settings.DATABASE_URL.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Render the migration SQL without connecting to the database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_kwargs())
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Hand a sync connection from the async engine to Alembic's runner."""
    connectable = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
