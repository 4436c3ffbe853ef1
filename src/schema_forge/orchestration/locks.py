"""Schema edit lock as a context manager."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from schema_forge.io.repositories.schema_lock_repository import SchemaLock, SchemaLockRepository
from schema_forge.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def schema_edit_lock(
    lock_repository: SchemaLockRepository,
    project_id: str,
    user_id: str,
    duration_minutes: Optional[int] = None,
) -> Iterator[SchemaLock]:
    """
    Hold the edit lock on ``project_id`` for the duration of the block.

    The lock is released on exit, including when the block raises.

    Raises:
        ConcurrencyError: If another user holds a live lock on the project
    """
    lock = lock_repository.acquire(project_id, user_id, duration_minutes)
    try:
        yield lock
    finally:
        if not lock_repository.release(project_id, user_id):
            logger.warning("schema_lock.release_missed", project_id=project_id, user_id=user_id)


__all__ = ["schema_edit_lock"]
