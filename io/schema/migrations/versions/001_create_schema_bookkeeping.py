"""Bookkeeping tables for schema versions, decision traces and edit locks.

- schema_versions: immutable snapshots, one active row per (project_id, user_id)
  enforced by the partial unique index ``uq_schema_versions_active_scope``
- decision_traces: append-only audit log, read newest first
- schema_locks: one TTL lock per project

Revision ID: 20261018_000001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the bookkeeping tables."""
    op.create_table(
        "schema_versions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("project_id", sa.String(255), nullable=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("version", sa.String(32), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        sa.Column("change_description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id", name="schema_versions_pkey"),
        comment="Immutable schema snapshots; exactly one active row per scope",
    )
    op.create_index("ix_schema_versions_scope", "schema_versions", ["user_id", "project_id"])
    op.create_index(
        "uq_schema_versions_active_scope",
        "schema_versions",
        [sa.text("COALESCE(project_id, '')"), "user_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "decision_traces",
        sa.Column("id", sa.String(36), nullable=False),
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
        sa.PrimaryKeyConstraint("id", name="decision_traces_pkey"),
        comment="Append-only audit log of schema-affecting actions",
    )
    op.create_index(
        "ix_decision_traces_user_project", "decision_traces", ["user_id", "project_id"]
    )
    op.create_index("ix_decision_traces_timestamp", "decision_traces", ["timestamp"])

    op.create_table(
        "schema_locks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("project_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="schema_locks_pkey"),
        sa.UniqueConstraint("project_id", name="schema_locks_project_id_key"),
        comment="TTL-based edit locks preventing concurrent schema changes",
    )
    op.create_index("ix_schema_locks_expires_at", "schema_locks", ["expires_at"])


def downgrade() -> None:
    """Drop the bookkeeping tables."""
    op.drop_index("ix_schema_locks_expires_at", table_name="schema_locks")
    op.drop_table("schema_locks")
    op.drop_index("ix_decision_traces_timestamp", table_name="decision_traces")
    op.drop_index("ix_decision_traces_user_project", table_name="decision_traces")
    op.drop_table("decision_traces")
    op.drop_index("uq_schema_versions_active_scope", table_name="schema_versions")
    op.drop_index("ix_schema_versions_scope", table_name="schema_versions")
    op.drop_table("schema_versions")
