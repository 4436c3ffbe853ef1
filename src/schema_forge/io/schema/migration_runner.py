"""Programmatic Alembic entry points for the bookkeeping tables."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from alembic import command
from alembic.config import Config

from schema_forge.config import get_database_url
from schema_forge.utils.logging import get_logger

LOGGER = get_logger("schema_forge.io.schema.migration_runner")

PROJECT_ROOT = Path(__file__).resolve().parents[4]
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
MIGRATIONS_DIR = PROJECT_ROOT / "io" / "schema" / "migrations"


def build_config(database_url: Optional[str] = None) -> Config:
    """Alembic config pointing at the bundled migrations and the target database."""
    cfg = Config(str(ALEMBIC_INI)) if ALEMBIC_INI.exists() else Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url or get_database_url())
    return cfg


def _run(name: str, action: Callable[[Config, str], None], database_url: Optional[str], revision: str) -> None:
    cfg = build_config(database_url)
    LOGGER.info(f"alembic.{name}.started", revision=revision)
    action(cfg, revision)
    LOGGER.info(f"alembic.{name}.completed", revision=revision)


def upgrade(database_url: Optional[str] = None, revision: str = "head") -> None:
    """Apply migrations up to ``revision``."""
    _run("upgrade", command.upgrade, database_url, revision)


def downgrade(database_url: Optional[str] = None, revision: str = "-1") -> None:
    """Revert migrations down to ``revision``."""
    _run("downgrade", command.downgrade, database_url, revision)


def stamp(database_url: Optional[str] = None, revision: str = "head") -> None:
    """Record ``revision`` as applied without running it."""
    _run("stamp", command.stamp, database_url, revision)


__all__ = ["build_config", "upgrade", "downgrade", "stamp", "ALEMBIC_INI", "MIGRATIONS_DIR"]
