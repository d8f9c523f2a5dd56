"""
Natours Backend — Alembic Migration Environment
=================================================

What:  Runs the Natours schema migrations (users, tours, tour_start_dates,
       tour_guides, reviews) against the database named by DATABASE_URL.
Why:   The API only ever talks to the database through async drivers
       (asyncpg in production, aiosqlite locally), so migrations use the
       same URL and driver instead of a second sync configuration.
How:   An async engine is opened from natours.config.settings and the
       migration steps run inside `connection.run_sync()`.

SQLite:
    SQLite cannot ALTER most column definitions in place; on that dialect
    Alembic's batch mode rebuilds the table instead.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from natours.config import settings
from natours.database import Base

# Registers users, tours, tour_start_dates, tour_guides and reviews on Base.metadata
import natours.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# DATABASE_URL wins over anything in alembic.ini
config.set_main_option("sqlalchemy.url", settings.database_url)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without a database connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        # Float/Integer/String length changes on tour columns show up in --autogenerate
        compare_type=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Open a throwaway async engine and apply pending revisions."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
