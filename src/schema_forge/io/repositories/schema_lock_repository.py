"""
Schema Lock Repository for TTL-based edit locks.

One row per project in ``schema_locks``. A lock held by the same user is
extended on re-acquire; a live lock held by anyone else rejects the request
with ``ConcurrencyError``. Expired rows are ignored and replaced, and
``cleanup_expired`` removes them in bulk.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from schema_forge.config import get_settings
from schema_forge.domain.versioning.models import as_utc, new_id, utc_now
from schema_forge.exceptions import ConcurrencyError
from schema_forge.io.schema.tables import schema_locks
from schema_forge.utils.logging import get_logger

logger = get_logger(__name__)

MIN_LOCK_MINUTES = 1


@dataclass(frozen=True)
class SchemaLock:
    project_id: str
    user_id: str
    locked_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "user_id": self.user_id,
            "locked_at": self.locked_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


def _row_to_lock(row: Mapping[str, Any]) -> SchemaLock:
    return SchemaLock(
        project_id=row["project_id"],
        user_id=row["user_id"],
        locked_at=as_utc(row["locked_at"]),
        expires_at=as_utc(row["expires_at"]),
    )


class SchemaLockRepository:
    """
    Repository for ``schema_locks`` rows.

    Usage:
        locks = SchemaLockRepository(engine)
        lock = locks.acquire("p1", "u1", duration_minutes=5)
        ...
        locks.release("p1", "u1")
    """

    def __init__(self, engine: Engine, max_minutes: Optional[int] = None):
        self.engine = engine
        self.max_minutes = max_minutes or get_settings().schema_lock_max_minutes

    def _check_duration(self, duration_minutes: int) -> None:
        if not MIN_LOCK_MINUTES <= duration_minutes <= self.max_minutes:
            raise ValueError(
                f"Lock duration must be between {MIN_LOCK_MINUTES} and "
                f"{self.max_minutes} minutes, got {duration_minutes}"
            )

    def get_lock(self, project_id: str) -> Optional[SchemaLock]:
        """The live lock for a project, or ``None`` if unlocked or expired."""
        with self.engine.connect() as conn:
            row = conn.execute(
                sa.select(schema_locks).where(schema_locks.c.project_id == project_id)
            ).mappings().first()
        if row is None:
            return None
        lock = _row_to_lock(row)
        return None if lock.is_expired() else lock

    def acquire(self, project_id: str, user_id: str, duration_minutes: Optional[int] = None) -> SchemaLock:
        """
        Acquire or extend the edit lock for a project.

        Raises:
            ValueError: If ``duration_minutes`` is outside the allowed bounds
            ConcurrencyError: If another user holds a live lock
        """
        if duration_minutes is None:
            duration_minutes = get_settings().schema_lock_default_minutes
        self._check_duration(duration_minutes)
        now = utc_now()
        expires_at = now + timedelta(minutes=duration_minutes)

        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    sa.select(schema_locks).where(schema_locks.c.project_id == project_id)
                ).mappings().first()
                existing = _row_to_lock(row) if row is not None else None

                if existing is not None and not existing.is_expired(now):
                    if existing.user_id != user_id:
                        logger.info(
                            "schema_lock.denied",
                            project_id=project_id,
                            user_id=user_id,
                            held_by=existing.user_id,
                        )
                        raise ConcurrencyError(
                            f"Project '{project_id}' is locked by another user",
                            project_id=project_id,
                            held_by=existing.user_id,
                            expires_at=existing.expires_at,
                        )
                    conn.execute(
                        sa.update(schema_locks)
                        .where(schema_locks.c.project_id == project_id)
                        .values(expires_at=expires_at)
                    )
                    logger.info("schema_lock.extended", project_id=project_id, user_id=user_id)
                    return SchemaLock(project_id, user_id, existing.locked_at, expires_at)

                if existing is not None:
                    conn.execute(
                        sa.delete(schema_locks).where(schema_locks.c.project_id == project_id)
                    )
                conn.execute(
                    sa.insert(schema_locks).values(
                        id=new_id(),
                        project_id=project_id,
                        user_id=user_id,
                        locked_at=now,
                        expires_at=expires_at,
                    )
                )
        except IntegrityError as exc:
            raise ConcurrencyError(
                f"Project '{project_id}' was locked concurrently",
                project_id=project_id,
            ) from exc

        logger.info(
            "schema_lock.acquired",
            project_id=project_id,
            user_id=user_id,
            expires_at=expires_at.isoformat(),
        )
        return SchemaLock(project_id, user_id, now, expires_at)

    def extend(self, project_id: str, user_id: str, duration_minutes: Optional[int] = None) -> SchemaLock:
        """Extend a lock the caller already holds."""
        current = self.get_lock(project_id)
        if current is None or current.user_id != user_id:
            raise ConcurrencyError(
                f"Cannot extend lock on '{project_id}': not held by this user",
                project_id=project_id,
                held_by=current.user_id if current else None,
            )
        return self.acquire(project_id, user_id, duration_minutes)

    def release(self, project_id: str, user_id: str) -> bool:
        """Release a lock held by ``user_id``; returns whether a row was removed."""
        with self.engine.begin() as conn:
            removed = conn.execute(
                sa.delete(schema_locks)
                .where(schema_locks.c.project_id == project_id)
                .where(schema_locks.c.user_id == user_id)
            ).rowcount
        if removed:
            logger.info("schema_lock.released", project_id=project_id, user_id=user_id)
        return bool(removed)

    def cleanup_expired(self) -> int:
        """Delete expired locks and return how many were removed."""
        with self.engine.begin() as conn:
            removed = conn.execute(
                sa.delete(schema_locks).where(schema_locks.c.expires_at <= utc_now())
            ).rowcount
        if removed:
            logger.info("schema_lock.cleanup", removed=removed)
        return removed


__all__ = ["SchemaLock", "SchemaLockRepository", "MIN_LOCK_MINUTES"]
