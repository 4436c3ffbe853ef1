"""Unit tests for the refinement state machine."""

from __future__ import annotations

import asyncio
from typing import Any, List

import pytest

from schema_forge.domain.refinement import (
    MessageRole,
    RefineIntent,
    RefinementRequest,
    RefinementSession,
    SessionState,
)
from schema_forge.exceptions import AIServiceError


class FakeCollaborator:
    """Replays canned replies; exceptions in the list are raised instead."""

    def __init__(self, *replies: Any):
        self.replies: List[Any] = list(replies)
        self.requests: List[RefinementRequest] = []

    async def refine(self, request: RefinementRequest) -> Any:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class SlowCollaborator:
    def __init__(self, release: "asyncio.Event | None" = None, delay: float = 1.0):
        self.release = release
        self.delay = delay

    async def refine(self, request: RefinementRequest) -> Any:
        if self.release is not None:
            await self.release.wait()
        else:
            await asyncio.sleep(self.delay)
        return {"intent": "CLARIFY", "message": "Done waiting"}


def add_column_reply(table: str, column: str, column_type: str = "TEXT") -> dict:
    return {
        "intent": "ADD_COLUMN",
        "reasoning": f"User wants {column} on {table}",
        "changes": [
            {
                "type": "add",
                "target": "column",
                "tableName": table,
                "changes": {"name": column, "type": column_type},
            }
        ],
        "message": f"Added {column} to {table}.",
    }


def _session(crm_schema, *replies, **kwargs) -> RefinementSession:
    session = RefinementSession(FakeCollaborator(*replies), timeout=kwargs.pop("timeout", 5), **kwargs)
    session.initialize(crm_schema)
    return session


class TestLifecycle:
    def test_new_session_is_idle(self) -> None:
        session = RefinementSession(FakeCollaborator(), timeout=1)

        assert session.state is SessionState.IDLE
        assert session.current_schema is None
        with pytest.raises(RuntimeError):
            asyncio.run(session.submit_message("Add a notes column"))

    def test_initialize(self, crm_schema) -> None:
        session = _session(crm_schema)

        assert session.state is SessionState.READY
        assert session.history == (crm_schema,)
        assert session.history_index == 0
        assert [m.role for m in session.messages] == [MessageRole.ASSISTANT]
        assert not session.can_undo and not session.can_redo

    def test_reinitialize_resets_history(self, crm_schema) -> None:
        session = _session(crm_schema, add_column_reply("deal", "notes"))
        asyncio.run(session.submit_message("Add notes"))

        session.initialize(crm_schema)

        assert session.history == (crm_schema,)
        assert len(session.messages) == 1


class TestAcceptedChanges:
    def test_changes_are_applied_and_pushed(self, crm_schema) -> None:
        session = _session(crm_schema, add_column_reply("deal", "notes"))

        outcome = asyncio.run(session.submit_message("Add a notes column to deals"))

        assert outcome.accepted is True
        assert outcome.intent is RefineIntent.ADD_COLUMN
        assert session.state is SessionState.READY
        assert session.history_index == 1
        assert session.current_schema.get_table("deal").get_column("notes") is not None
        assert session.history[0] is crm_schema
        reply = session.messages[-1]
        assert reply.role is MessageRole.ASSISTANT
        assert reply.content == "Added notes to deal."
        assert reply.metadata["intent"] == "ADD_COLUMN"
        assert reply.metadata["changes"][0]["target"] == "column"

    def test_full_updated_schema_is_accepted(self, crm_schema, crm_payload, contact_table) -> None:
        crm_payload["tables"].append(contact_table)
        session = _session(crm_schema, {"intent": "ADD_TABLE", "updatedSchema": crm_payload})

        outcome = asyncio.run(session.submit_message("Track contacts"))

        assert outcome.accepted is True
        assert session.current_schema.table_names() == ["company", "deal", "contact"]

    def test_request_carries_schema_and_recent_messages(self, crm_schema) -> None:
        collaborator = FakeCollaborator(add_column_reply("deal", "notes"), add_column_reply("company", "phone"))
        session = RefinementSession(collaborator, timeout=5, window=2)
        session.initialize(crm_schema)

        asyncio.run(session.submit_message("Add notes"))
        asyncio.run(session.submit_message("Add phone"))

        second = collaborator.requests[1]
        assert second.message == "Add phone"
        assert second.current_schema.get_table("deal").get_column("notes") is not None
        assert len(second.last_messages) == 2
        assert second.last_messages[-1].content == "Add phone"
        assert second.to_payload()["current_schema"]["version"] == "1.0.0"


class TestRepliesWithoutChanges:
    def test_clarify_does_not_touch_history(self, crm_schema) -> None:
        session = _session(crm_schema, {"intent": "CLARIFY", "message": "Which table should get the column?"})

        outcome = asyncio.run(session.submit_message("Add a column"))

        assert outcome.accepted is False
        assert outcome.intent is RefineIntent.CLARIFY
        assert session.history == (crm_schema,)
        assert session.messages[-1].content == "Which table should get the column?"
        assert session.last_error is None


class TestRejectedCandidates:
    """Failures produce an assistant error and leave history untouched."""

    def _assert_rejected(self, session, crm_schema, outcome) -> None:
        assert outcome.accepted is False
        assert session.history == (crm_schema,)
        assert session.history_index == 0
        assert session.state is SessionState.READY
        assert session.last_error
        assert session.messages[-1].role is MessageRole.ASSISTANT
        assert session.messages[-1].metadata["error"] == session.last_error

    def test_validation_failure(self, crm_schema) -> None:
        session = _session(crm_schema, add_column_reply("deal", "select"))

        outcome = asyncio.run(session.submit_message("Add a select column"))

        self._assert_rejected(session, crm_schema, outcome)
        assert "reserved_word" in session.last_error
        assert any("reserved word" in e for e in outcome.errors)

    def test_shape_failure(self, crm_schema) -> None:
        session = _session(crm_schema, add_column_reply("deal", "probability", "PERCENT"))

        outcome = asyncio.run(session.submit_message("Add probability"))

        self._assert_rejected(session, crm_schema, outcome)
        assert "shape" in session.last_error

    def test_change_targeting_missing_table(self, crm_schema) -> None:
        session = _session(crm_schema, add_column_reply("invoice", "total"))

        outcome = asyncio.run(session.submit_message("Add total to invoices"))

        self._assert_rejected(session, crm_schema, outcome)
        assert "invoice" in session.last_error

    def test_collaborator_exception(self, crm_schema) -> None:
        session = _session(crm_schema, ConnectionError("connection reset"))

        outcome = asyncio.run(session.submit_message("Add notes"))

        self._assert_rejected(session, crm_schema, outcome)
        assert outcome.intent is None
        assert "connection reset" in session.last_error

    def test_collaborator_service_error_passes_through(self, crm_schema) -> None:
        session = _session(crm_schema, AIServiceError("rate limited"))

        asyncio.run(session.submit_message("Add notes"))

        assert session.last_error == "rate limited"

    def test_unparsable_reply(self, crm_schema) -> None:
        session = _session(crm_schema, "Sure, I added it!")

        outcome = asyncio.run(session.submit_message("Add notes"))

        self._assert_rejected(session, crm_schema, outcome)

    def test_malformed_table_delta(self, crm_schema) -> None:
        reply = {
            "intent": "ADD_TABLE",
            "changes": [{"type": "add", "target": "table", "changes": {"name": "contact", "columns": None}}],
            "message": "Added contacts.",
        }
        session = _session(crm_schema, reply)

        outcome = asyncio.run(session.submit_message("Add contacts"))

        self._assert_rejected(session, crm_schema, outcome)
        assert "columns" in session.last_error

    def test_timeout(self, crm_schema) -> None:
        session = RefinementSession(SlowCollaborator(delay=1.0), timeout=0.01)
        session.initialize(crm_schema)

        outcome = asyncio.run(session.submit_message("Add notes"))

        self._assert_rejected(session, crm_schema, outcome)
        assert "timed out" in session.last_error


class TestProcessingGuard:
    def test_second_message_while_processing_is_rejected(self, crm_schema) -> None:
        async def scenario() -> None:
            release = asyncio.Event()
            session = RefinementSession(SlowCollaborator(release=release), timeout=5)
            session.initialize(crm_schema)

            first = asyncio.create_task(session.submit_message("first"))
            await asyncio.sleep(0)
            assert session.state is SessionState.PROCESSING
            with pytest.raises(RuntimeError):
                await session.submit_message("second")

            release.set()
            await first
            assert session.state is SessionState.READY

        asyncio.run(scenario())


class TestUndoRedo:
    """Linear history: accepting after undo discards the redo branch."""

    def _two_changes(self, crm_schema) -> RefinementSession:
        session = _session(
            crm_schema,
            add_column_reply("deal", "notes"),
            add_column_reply("company", "phone"),
            add_column_reply("company", "industry"),
        )
        asyncio.run(session.submit_message("Add notes"))
        asyncio.run(session.submit_message("Add phone"))
        return session

    def test_undo_and_redo(self, crm_schema) -> None:
        session = self._two_changes(crm_schema)
        latest = session.current_schema

        assert session.undo() is True
        assert session.history_index == 1
        assert session.current_schema.get_table("company").get_column("phone") is None
        assert session.messages[-1].role is MessageRole.SYSTEM

        assert session.redo() is True
        assert session.current_schema is latest

    def test_boundaries(self, crm_schema) -> None:
        session = _session(crm_schema)

        assert session.undo() is False
        assert session.redo() is False

    def test_accept_after_undo_truncates_branch(self, crm_schema) -> None:
        session = self._two_changes(crm_schema)
        session.undo()

        asyncio.run(session.submit_message("Add industry"))

        assert len(session.history) == 3
        assert session.history_index == 2
        assert session.can_redo is False
        company = session.current_schema.get_table("company")
        assert company.get_column("industry") is not None
        assert company.get_column("phone") is None

    def test_snapshot(self, crm_schema) -> None:
        session = self._two_changes(crm_schema)

        snapshot = session.snapshot()

        assert snapshot["state"] == "ready"
        assert snapshot["history_length"] == 3
        assert snapshot["history_index"] == 2
        assert snapshot["current_schema"]["tables"][0]["name"] == "company"
