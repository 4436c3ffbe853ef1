"""Alembic environment for the SchemaForge bookkeeping tables.

The database URL comes from ``schema_forge.config`` unless the caller already
set ``sqlalchemy.url`` (``migration_runner.build_config`` does). Logging goes
through the structlog pipeline in ``schema_forge.utils.logging``.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from schema_forge.config import get_database_url
from schema_forge.io.schema.tables import metadata
from schema_forge.utils.logging import get_logger

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = get_logger("schema_forge.io.schema.migrations.env")

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", get_database_url())

target_metadata = metadata


def run_migrations_offline() -> None:
    """Emit migration SQL without a live connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()

    logger.info("migrations.completed_offline")


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()

    logger.info("migrations.completed_online", dialect=connectable.dialect.name)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
