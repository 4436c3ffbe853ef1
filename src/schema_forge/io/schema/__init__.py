"""Bookkeeping table metadata and Alembic helpers."""

from .tables import create_all, decision_traces, metadata, schema_locks, schema_versions

__all__ = ["metadata", "schema_versions", "decision_traces", "schema_locks", "create_all"]
