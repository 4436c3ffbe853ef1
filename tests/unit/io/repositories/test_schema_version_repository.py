"""Unit tests for schema version persistence (SQLite)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from schema_forge.domain.versioning.models import new_id, utc_now
from schema_forge.exceptions import ConcurrencyError
from schema_forge.io.repositories import SchemaVersionRepository
from schema_forge.io.schema.tables import schema_versions


@pytest.fixture
def repo(engine) -> SchemaVersionRepository:
    return SchemaVersionRepository(engine)


class TestInsertActive:
    """Activation keeps exactly one active version per scope."""

    def test_revisions_increase_per_scope(self, repo, crm_schema) -> None:
        first = repo.insert_active(crm_schema, "v1", user_id="u1", project_id="p1")
        second = repo.insert_active(crm_schema, "v2", user_id="u1", project_id="p1")
        other_scope = repo.insert_active(crm_schema, "v1", user_id="u1", project_id="p2")

        assert (first.revision, second.revision, other_scope.revision) == (1, 2, 1)

    def test_previous_version_is_deactivated(self, repo, crm_schema) -> None:
        first = repo.insert_active(crm_schema, "v1", user_id="u1", project_id="p1")
        second = repo.insert_active(crm_schema, "v2", user_id="u1", project_id="p1")

        assert repo.get(first.id).is_active is False
        assert repo.get_active(user_id="u1", project_id="p1").id == second.id
        assert repo.count_active(user_id="u1", project_id="p1") == 1

    def test_null_project_is_its_own_scope(self, repo, crm_schema) -> None:
        repo.insert_active(crm_schema, "personal", user_id="u1")
        repo.insert_active(crm_schema, "project", user_id="u1", project_id="p1")

        assert repo.count_active(user_id="u1") == 1
        assert repo.count_active(user_id="u1", project_id="p1") == 1
        assert repo.get_active(user_id="u1").change_description == "personal"

    def test_snapshot_round_trips(self, repo, crm_schema) -> None:
        stored = repo.insert_active(crm_schema, "v1", user_id="u1")

        loaded = repo.get(stored.id)

        assert loaded.snapshot == crm_schema
        assert loaded.created_at.tzinfo is not None

    def test_list_newest_first_with_limit(self, repo, crm_schema) -> None:
        for i in range(3):
            repo.insert_active(crm_schema, f"change {i}", user_id="u1", project_id="p1")

        listed = repo.list_for_scope(user_id="u1", project_id="p1", limit=2)

        assert [v.change_description for v in listed] == ["change 2", "change 1"]

    def test_integrity_error_becomes_concurrency_error(self, crm_schema) -> None:
        engine = MagicMock()
        conn = engine.begin.return_value.__enter__.return_value
        conn.execute.side_effect = [
            MagicMock(**{"scalar.return_value": 1}),
            MagicMock(rowcount=1),
            IntegrityError("INSERT", {}, Exception("duplicate key value")),
        ]

        with pytest.raises(ConcurrencyError):
            SchemaVersionRepository(engine).insert_active(crm_schema, "race", user_id="u1", project_id="p1")


class TestActiveScopeIndex:
    """The partial unique index rejects a second active row in one scope."""

    def _row(self, crm_schema, revision: int, active: bool) -> dict:
        return {
            "id": new_id(),
            "project_id": "p1",
            "user_id": "u1",
            "revision": revision,
            "version": "1.0.0",
            "snapshot": crm_schema.to_payload(),
            "change_description": "",
            "created_at": utc_now(),
            "is_active": active,
        }

    def test_two_active_rows_conflict(self, engine, crm_schema) -> None:
        with engine.begin() as conn:
            conn.execute(sa.insert(schema_versions).values(self._row(crm_schema, 1, True)))

        with pytest.raises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(sa.insert(schema_versions).values(self._row(crm_schema, 2, True)))

    def test_inactive_rows_do_not_conflict(self, engine, crm_schema) -> None:
        with engine.begin() as conn:
            conn.execute(sa.insert(schema_versions).values(self._row(crm_schema, 1, True)))
            conn.execute(sa.insert(schema_versions).values(self._row(crm_schema, 2, False)))
            conn.execute(sa.insert(schema_versions).values(self._row(crm_schema, 3, False)))


class TestCountsAndDelete:
    def test_count_and_delete_project(self, repo, crm_schema) -> None:
        repo.insert_active(crm_schema, "a", user_id="u1", project_id="p1")
        repo.insert_active(crm_schema, "b", user_id="u1", project_id="p1")
        repo.insert_active(crm_schema, "c", user_id="u1", project_id="p2")

        assert repo.count_for_user("u1") == 3
        assert repo.delete_project("p1") == 2
        assert repo.count_for_user("u1") == 1
