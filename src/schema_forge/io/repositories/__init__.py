"""Repositories for SchemaForge bookkeeping tables."""

from .decision_trace_repository import DecisionTraceRepository
from .schema_lock_repository import SchemaLock, SchemaLockRepository
from .schema_version_repository import SchemaVersionRepository

__all__ = [
    "SchemaVersionRepository",
    "DecisionTraceRepository",
    "SchemaLock",
    "SchemaLockRepository",
]
