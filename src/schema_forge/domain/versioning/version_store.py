"""Version store: immutable snapshots with one active version per scope."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.engine import Engine

from schema_forge.config import get_settings
from schema_forge.exceptions import VersionNotFoundError
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.validation import ensure_valid
from schema_forge.io.repositories.decision_trace_repository import DecisionTraceRepository
from schema_forge.io.repositories.schema_version_repository import SchemaVersionRepository
from schema_forge.utils.logging import get_logger

from .diff import compare_snapshots
from .models import DecisionTrace, SchemaVersion, VersionDiff

logger = get_logger(__name__)

Scope = Tuple[Optional[str], str]


class VersionStore:
    """
    Persist, list, diff and roll back schema versions.

    Activation is serialized per scope in-process by a ``threading.Lock`` and
    made atomic in the database by the repository transaction.
    ``rollback_to_version`` only returns the stored snapshot; making it live
    again means running it through validation, compilation and provisioning
    and then ``create_version``.
    """

    def __init__(
        self,
        version_repository: SchemaVersionRepository,
        trace_repository: Optional[DecisionTraceRepository] = None,
        list_limit: Optional[int] = None,
    ):
        self.versions = version_repository
        self.traces = trace_repository
        self.list_limit = list_limit or get_settings().version_list_limit
        # scope -> (lock, number of callers holding or waiting on it)
        self._scope_locks: Dict[Scope, Tuple[threading.Lock, int]] = {}
        self._scope_locks_guard = threading.Lock()

    @classmethod
    def from_engine(cls, engine: Engine, list_limit: Optional[int] = None) -> "VersionStore":
        return cls(SchemaVersionRepository(engine), DecisionTraceRepository(engine), list_limit)

    @contextmanager
    def _scope_lock(self, user_id: str, project_id: Optional[str]) -> Iterator[None]:
        """Serialize activations in one scope; the entry is dropped once no caller needs it."""
        key = (project_id, user_id)
        with self._scope_locks_guard:
            lock, users = self._scope_locks.get(key) or (threading.Lock(), 0)
            self._scope_locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._scope_locks_guard:
                _, users = self._scope_locks[key]
                if users <= 1:
                    del self._scope_locks[key]
                else:
                    self._scope_locks[key] = (lock, users - 1)

    def create_version(
        self,
        schema: EntitySchema,
        description: str,
        *,
        user_id: str,
        project_id: Optional[str] = None,
    ) -> SchemaVersion:
        """Store ``schema`` as the active version of its scope."""
        schema = ensure_valid(schema)
        with self._scope_lock(user_id, project_id):
            return self.versions.insert_active(
                schema, description, user_id=user_id, project_id=project_id
            )

    def get_version(self, version_id: str) -> SchemaVersion:
        version = self.versions.get(version_id)
        if version is None:
            raise VersionNotFoundError(version_id)
        return version

    def list_versions(
        self, *, user_id: str, project_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[SchemaVersion]:
        return self.versions.list_for_scope(
            user_id=user_id, project_id=project_id, limit=limit or self.list_limit
        )

    def get_active_version(self, *, user_id: str, project_id: Optional[str] = None) -> Optional[SchemaVersion]:
        return self.versions.get_active(user_id=user_id, project_id=project_id)

    def rollback_to_version(self, version_id: str) -> EntitySchema:
        """Return the stored snapshot of ``version_id`` without activating it."""
        version = self.get_version(version_id)
        logger.info(
            "schema_version.rollback_requested",
            version_id=version_id,
            version=version.version,
            project_id=version.project_id,
        )
        return version.snapshot

    def compare_versions(self, version_a: str, version_b: str) -> VersionDiff:
        """Changes going from ``version_a`` to ``version_b``."""
        return compare_snapshots(
            self.get_version(version_a).snapshot, self.get_version(version_b).snapshot
        )

    def count_versions(self, user_id: str) -> int:
        return self.versions.count_for_user(user_id)

    def list_traces(
        self, *, user_id: str, project_id: Optional[str] = None, limit: int = 50
    ) -> List[DecisionTrace]:
        if self.traces is None:
            return []
        return self.traces.list_traces(user_id=user_id, project_id=project_id, limit=limit)

    def delete_project_versions(self, project_id: str) -> int:
        """Delete a project's versions and decision traces in one transaction."""
        with self.versions.engine.begin() as conn:
            removed = self.versions.delete_project(project_id, conn=conn)
            traces = self.traces.delete_project(project_id, conn=conn) if self.traces else 0
        logger.info(
            "schema_version.project_deleted",
            project_id=project_id,
            versions_removed=removed,
            traces_removed=traces,
        )
        return removed


__all__ = ["VersionStore"]
