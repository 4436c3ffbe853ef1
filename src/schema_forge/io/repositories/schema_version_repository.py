"""
Schema Version Repository for schema snapshot persistence.

Stores every accepted schema as an immutable row in ``schema_versions`` and
maintains the "exactly one active version per scope" invariant, where a scope
is the ``(project_id, user_id)`` pair. Activation (deactivate the previous
rows, insert the new active row) happens inside one transaction; on
PostgreSQL the partial unique index ``uq_schema_versions_active_scope`` turns
a lost race into an ``IntegrityError`` that is reported as a
``ConcurrencyError``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from schema_forge.domain.versioning.models import SchemaVersion, as_utc, new_id, utc_now
from schema_forge.exceptions import ConcurrencyError
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.io.schema.tables import schema_versions
from schema_forge.utils.logging import get_logger

logger = get_logger(__name__)


def scope_clause(table: sa.Table, user_id: str, project_id: Optional[str]) -> sa.ColumnElement:
    """WHERE clause selecting one scope; a missing project matches NULL."""
    project_match = (
        table.c.project_id.is_(None) if project_id is None else table.c.project_id == project_id
    )
    return sa.and_(table.c.user_id == user_id, project_match)


def _row_to_version(row: Mapping[str, Any]) -> SchemaVersion:
    return SchemaVersion(
        id=row["id"],
        project_id=row["project_id"],
        user_id=row["user_id"],
        revision=row["revision"],
        version=row["version"],
        snapshot=EntitySchema.from_payload(row["snapshot"]),
        change_description=row["change_description"],
        created_at=as_utc(row["created_at"]),
        is_active=bool(row["is_active"]),
    )


class SchemaVersionRepository:
    """
    Repository for ``schema_versions`` rows.

    Usage:
        repo = SchemaVersionRepository(engine)

        # Store a new active snapshot, deactivating the previous one
        version = repo.insert_active(schema, "Add deal table", user_id="u1", project_id="p1")

        # Newest first
        history = repo.list_for_scope(user_id="u1", project_id="p1", limit=20)
    """

    def __init__(self, engine: Engine):
        """
        Initialize the repository with a SQLAlchemy engine.

        Args:
            engine: Engine for the bookkeeping database
        """
        self.engine = engine

    def _next_revision(self, conn: Connection, user_id: str, project_id: Optional[str]) -> int:
        current = conn.execute(
            sa.select(sa.func.max(schema_versions.c.revision)).where(
                scope_clause(schema_versions, user_id, project_id)
            )
        ).scalar()
        return (current or 0) + 1

    def insert_active(
        self,
        schema: EntitySchema,
        description: str,
        *,
        user_id: str,
        project_id: Optional[str] = None,
    ) -> SchemaVersion:
        """
        Deactivate every version in the scope and insert ``schema`` as active.

        Both writes share one transaction, so readers never observe zero or
        two active versions for the scope.

        Raises:
            ConcurrencyError: If a concurrent activation won the race
        """
        version = SchemaVersion(
            id=new_id(),
            project_id=project_id,
            user_id=user_id,
            version=schema.version,
            snapshot=schema,
            change_description=description,
            created_at=utc_now(),
            is_active=True,
        )
        try:
            with self.engine.begin() as conn:
                revision = self._next_revision(conn, user_id, project_id)
                deactivated = conn.execute(
                    sa.update(schema_versions)
                    .where(scope_clause(schema_versions, user_id, project_id))
                    .where(schema_versions.c.is_active.is_(True))
                    .values(is_active=False)
                ).rowcount
                conn.execute(
                    sa.insert(schema_versions).values(
                        id=version.id,
                        project_id=project_id,
                        user_id=user_id,
                        revision=revision,
                        version=version.version,
                        snapshot=schema.to_payload(),
                        change_description=description,
                        created_at=version.created_at,
                        is_active=True,
                    )
                )
        except IntegrityError as exc:
            logger.warning(
                "schema_version.activation_conflict",
                user_id=user_id,
                project_id=project_id,
                error=str(exc.orig),
            )
            raise ConcurrencyError(
                "Another schema version was activated concurrently for this scope",
                project_id=project_id,
            ) from exc

        logger.info(
            "schema_version.created",
            version_id=version.id,
            revision=revision,
            version=version.version,
            user_id=user_id,
            project_id=project_id,
            deactivated=deactivated,
        )
        return replace(version, revision=revision)

    def get(self, version_id: str) -> Optional[SchemaVersion]:
        with self.engine.connect() as conn:
            row = conn.execute(
                sa.select(schema_versions).where(schema_versions.c.id == version_id)
            ).mappings().first()
        return _row_to_version(row) if row is not None else None

    def get_active(self, *, user_id: str, project_id: Optional[str] = None) -> Optional[SchemaVersion]:
        with self.engine.connect() as conn:
            row = conn.execute(
                sa.select(schema_versions)
                .where(scope_clause(schema_versions, user_id, project_id))
                .where(schema_versions.c.is_active.is_(True))
            ).mappings().first()
        return _row_to_version(row) if row is not None else None

    def list_for_scope(
        self, *, user_id: str, project_id: Optional[str] = None, limit: int = 20
    ) -> List[SchemaVersion]:
        """Versions in the scope, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                sa.select(schema_versions)
                .where(scope_clause(schema_versions, user_id, project_id))
                .order_by(schema_versions.c.revision.desc())
                .limit(limit)
            ).mappings().all()
        return [_row_to_version(row) for row in rows]

    def count_for_user(self, user_id: str) -> int:
        with self.engine.connect() as conn:
            return conn.execute(
                sa.select(sa.func.count())
                .select_from(schema_versions)
                .where(schema_versions.c.user_id == user_id)
            ).scalar_one()

    def count_active(self, *, user_id: str, project_id: Optional[str] = None) -> int:
        with self.engine.connect() as conn:
            return conn.execute(
                sa.select(sa.func.count())
                .select_from(schema_versions)
                .where(scope_clause(schema_versions, user_id, project_id))
                .where(schema_versions.c.is_active.is_(True))
            ).scalar_one()

    def delete_project(self, project_id: str, conn: Optional[Connection] = None) -> int:
        """Delete every version of a project; returns the number of rows removed."""
        stmt = sa.delete(schema_versions).where(schema_versions.c.project_id == project_id)
        if conn is not None:
            return conn.execute(stmt).rowcount
        with self.engine.begin() as own_conn:
            return own_conn.execute(stmt).rowcount


__all__ = ["SchemaVersionRepository", "scope_clause"]
