"""
Decision Trace Repository for the schema audit log.

Traces are append-only: the only deletion path is the project teardown used
by ``VersionStore.delete_project_versions``.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from schema_forge.domain.versioning.models import DecisionTrace, as_utc
from schema_forge.io.schema.tables import decision_traces
from schema_forge.utils.logging import get_logger

from .schema_version_repository import scope_clause

logger = get_logger(__name__)


def _row_to_trace(row: Mapping[str, Any]) -> DecisionTrace:
    return DecisionTrace(
        id=row["id"],
        project_id=row["project_id"],
        user_id=row["user_id"],
        intent=row["intent"],
        action=row["action"],
        precedent=row["precedent"],
        version=row["version"],
        schema_before=row["schema_before"],
        schema_after=row["schema_after"],
        details=row["details"],
        timestamp=as_utc(row["timestamp"]),
    )


class DecisionTraceRepository:
    """
    Repository for ``decision_traces`` rows.

    Usage:
        repo = DecisionTraceRepository(engine)
        repo.append(DecisionTrace(user_id="u1", intent="Add deals", action="provision", version="1.0.0"))
        timeline = repo.list_traces(user_id="u1", project_id="p1")
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def append(self, trace: DecisionTrace) -> DecisionTrace:
        """Insert one trace and return it unchanged."""
        with self.engine.begin() as conn:
            conn.execute(
                sa.insert(decision_traces).values(
                    id=trace.id,
                    project_id=trace.project_id,
                    user_id=trace.user_id,
                    intent=trace.intent,
                    action=trace.action,
                    precedent=trace.precedent,
                    version=trace.version,
                    schema_before=trace.schema_before,
                    schema_after=trace.schema_after,
                    details=trace.details,
                    timestamp=trace.timestamp,
                )
            )
        logger.info(
            "decision_trace.appended",
            trace_id=trace.id,
            action=trace.action,
            user_id=trace.user_id,
            project_id=trace.project_id,
            version=trace.version,
        )
        return trace

    def list_traces(
        self, *, user_id: str, project_id: Optional[str] = None, limit: int = 50
    ) -> List[DecisionTrace]:
        """Traces for one scope, most recent first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                sa.select(decision_traces)
                .where(scope_clause(decision_traces, user_id, project_id))
                .order_by(decision_traces.c.timestamp.desc())
                .limit(limit)
            ).mappings().all()
        return [_row_to_trace(row) for row in rows]

    def delete_project(self, project_id: str, conn: Optional[Connection] = None) -> int:
        stmt = sa.delete(decision_traces).where(decision_traces.c.project_id == project_id)
        if conn is not None:
            return conn.execute(stmt).rowcount
        with self.engine.begin() as own_conn:
            return own_conn.execute(stmt).rowcount


__all__ = ["DecisionTraceRepository"]
