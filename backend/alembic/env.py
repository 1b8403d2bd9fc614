"""
Alembic Migration Environment
===============================

What:  Runs RouteDesk migrations with the same async engine setup the API uses.
How:   The URL comes from routedesk.config (DATABASE_URL / VITE_DATABASE_URL)
       and goes through normalize_database_url, so a provider URL such as
       postgresql://...?sslmode=require works unchanged.
Who:   Called by `alembic` CLI commands (upgrade, downgrade, revision).
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from routedesk.config import settings
from routedesk.database import Base, normalize_database_url

# Registers Route and Location on Base.metadata for --autogenerate
import routedesk.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

if not settings.database_configured:
    raise RuntimeError("DATABASE_URL is not set; cannot run migrations")

# ConfigParser interpolation treats % specially (percent-encoded passwords)
database_url = normalize_database_url(settings.database_url).render_as_string(hide_password=False)
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (alembic upgrade --sql)."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Connect with an unpooled async engine and run migrations via run_sync()."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
