"""Alembic environment for the shop admin schema (users, products).

Migrations run through the same async engine configuration as the
application.  SQLite URLs (local development) use batch mode so that
ALTER TABLE operations on the CHECK-constrained tables are emulated.
"""

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from shop_admin.config import settings
from shop_admin.database import Base

# Registers the User and Product tables on Base.metadata.
import shop_admin.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

# Credentials live in .env / environment variables, not alembic.ini.
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        # Detect String length changes (username 30, phone 15, ...).
        "compare_type": True,
        "render_as_batch": _is_sqlite(url),
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of applying it."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_options(settings.DATABASE_URL))
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply migrations over an async connection via run_sync()."""
    connectable = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
    logger.info("Running migrations against %s", connectable.url.render_as_string(hide_password=True))

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
