"""Alembic environment for the meeting and transcript schema.

Uses a synchronous engine: the asyncpg driver suffix is stripped from
DATABASE_URL so migrations run through the default PostgreSQL driver.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from src.zoom_helper.config import get_settings
from src.zoom_helper.core.database import Base
from src.zoom_helper.meetings import models  # noqa: F401  (registers tables)

# Alembic Config object
config = context.config

# Interpret the config file for Python logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return get_settings().DATABASE_URL.replace("+asyncpg", "")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
