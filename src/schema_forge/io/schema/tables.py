"""SQLAlchemy Core metadata for SchemaForge bookkeeping tables.

These tables hold the platform's own state (schema versions, decision traces
and edit locks), not the user entities produced by the DDL compiler. The
Alembic migration under ``io/schema/migrations`` creates the same tables on
PostgreSQL; ``metadata.create_all`` is used for SQLite development databases
and tests.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.engine import Engine

metadata = sa.MetaData()

schema_versions = sa.Table(
    "schema_versions",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(255), nullable=True),
    sa.Column("user_id", sa.String(255), nullable=False),
    sa.Column("revision", sa.Integer(), nullable=False),
    sa.Column("version", sa.String(32), nullable=False),
    sa.Column("snapshot", sa.JSON(), nullable=False),
    sa.Column("change_description", sa.Text(), nullable=False, server_default=""),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
    comment="Immutable schema snapshots; exactly one active row per scope",
)

sa.Index("ix_schema_versions_scope", schema_versions.c.user_id, schema_versions.c.project_id)
sa.Index(
    "uq_schema_versions_active_scope",
    sa.func.coalesce(schema_versions.c.project_id, ""),
    schema_versions.c.user_id,
    unique=True,
    postgresql_where=sa.text("is_active"),
    sqlite_where=sa.text("is_active = 1"),
)

decision_traces = sa.Table(
    "decision_traces",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(255), nullable=True),
    sa.Column("user_id", sa.String(255), nullable=False),
    sa.Column("intent", sa.Text(), nullable=False),
    sa.Column("action", sa.String(64), nullable=False),
    sa.Column("precedent", sa.Text(), nullable=True),
    sa.Column("version", sa.String(32), nullable=False),
    sa.Column("schema_before", sa.JSON(), nullable=True),
    sa.Column("schema_after", sa.JSON(), nullable=True),
    sa.Column("details", sa.JSON(), nullable=True),
    sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    comment="Append-only audit log of schema-affecting actions",
)

sa.Index("ix_decision_traces_user_project", decision_traces.c.user_id, decision_traces.c.project_id)
sa.Index("ix_decision_traces_timestamp", decision_traces.c.timestamp)

schema_locks = sa.Table(
    "schema_locks",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(255), nullable=False, unique=True),
    sa.Column("user_id", sa.String(255), nullable=False),
    sa.Column("locked_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    comment="TTL-based edit locks preventing concurrent schema changes",
)

sa.Index("ix_schema_locks_expires_at", schema_locks.c.expires_at)


def create_all(engine: Engine) -> None:
    """Create the bookkeeping tables if they do not exist."""
    metadata.create_all(engine)


__all__ = [
    "metadata",
    "schema_versions",
    "decision_traces",
    "schema_locks",
    "create_all",
]
