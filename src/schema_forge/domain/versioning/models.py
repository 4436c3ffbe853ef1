"""Records persisted by the version store and the audit trail."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schema_forge.infrastructure.schema.core import EntitySchema


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SchemaVersion:
    """An immutable schema snapshot; at most one per scope is active."""

    id: str
    user_id: str
    version: str
    snapshot: EntitySchema
    change_description: str
    created_at: datetime
    is_active: bool
    project_id: Optional[str] = None
    revision: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "revision": self.revision,
            "version": self.version,
            "snapshot": self.snapshot.to_payload(),
            "change_description": self.change_description,
            "created_at": self.created_at.isoformat(),
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class DecisionTrace:
    """One append-only audit record of a schema-affecting action.

    ``intent`` is the user's request, ``action`` what the system did
    (``provision``, ``rollback``...), ``precedent`` the collaborator's
    reasoning.
    """

    user_id: str
    intent: str
    action: str
    version: str
    project_id: Optional[str] = None
    precedent: Optional[str] = None
    schema_before: Optional[Dict[str, Any]] = None
    schema_after: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "intent": self.intent,
            "action": self.action,
            "precedent": self.precedent,
            "version": self.version,
            "schema_before": self.schema_before,
            "schema_after": self.schema_after,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TableChange:
    """Column-level differences for a table present in both snapshots."""

    table: str
    added_columns: List[str] = field(default_factory=list)
    removed_columns: List[str] = field(default_factory=list)
    changed_columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "added_columns": list(self.added_columns),
            "removed_columns": list(self.removed_columns),
            "changed_columns": list(self.changed_columns),
        }


@dataclass(frozen=True)
class VersionDiff:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[TableChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": [m.to_dict() for m in self.modified],
        }


__all__ = [
    "utc_now",
    "as_utc",
    "new_id",
    "SchemaVersion",
    "DecisionTrace",
    "TableChange",
    "VersionDiff",
]
