"""
Refinement state machine.

States: ``IDLE`` (no schema) -> ``READY`` (schema loaded) -> ``PROCESSING``
(awaiting the collaborator) -> ``READY``.

Schema history is a list of snapshots plus an index with linear undo:
accepting a schema after an undo discards the undone branch. A rejected
candidate (collaborator failure, timeout, unparsable delta or validation
failure) never enters the history; the session answers with an assistant
error message and returns to ``READY``.

One session belongs to one editing session; instances are not shared.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from schema_forge.config import get_settings
from schema_forge.exceptions import AIServiceError, ChangeSetError
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.validation import ValidationResult, validate
from schema_forge.utils.logging import get_logger

from .changeset import apply_changes_to_payload, parse_changes
from .collaborator import RefinementCollaborator, parse_response
from .models import (
    ChatMessage,
    MessageRole,
    RefineIntent,
    RefinementOutcome,
    RefinementRequest,
    RefinementResponse,
    SessionState,
)

logger = get_logger(__name__)

Validator = Callable[[Any], ValidationResult]

WELCOME_MESSAGE = (
    "Your schema is ready. Ask me for changes, for example "
    "'Add a status column to deals'."
)


class RefinementSession:
    """
    Conversational editing of one schema.

    Usage:
        session = RefinementSession(collaborator)
        session.initialize(schema)
        outcome = await session.submit_message("Add a phone column to company")
        if outcome.accepted:
            schema = session.current_schema
    """

    def __init__(
        self,
        collaborator: RefinementCollaborator,
        *,
        validator: Validator = validate,
        timeout: Optional[float] = None,
        window: Optional[int] = None,
    ):
        settings = get_settings()
        self.collaborator = collaborator
        self.validator = validator
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self.window = window if window is not None else settings.refinement_history_window
        self._state = SessionState.IDLE
        self._messages: List[ChatMessage] = []
        self._history: List[EntitySchema] = []
        self._index = -1
        self._last_error: Optional[str] = None

    # State

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_schema(self) -> Optional[EntitySchema]:
        return self._history[self._index] if self._history else None

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @property
    def history(self) -> Tuple[EntitySchema, ...]:
        return tuple(self._history)

    @property
    def history_index(self) -> int:
        return self._index

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._index < len(self._history) - 1

    def snapshot(self) -> Dict[str, Any]:
        current = self.current_schema
        return {
            "state": self._state.value,
            "current_schema": current.to_payload() if current else None,
            "history_length": len(self._history),
            "history_index": self._index,
            "messages": [m.to_dict() for m in self._messages],
            "last_error": self._last_error,
        }

    # Transitions

    def initialize(self, schema: EntitySchema) -> None:
        """Reset messages and history to ``schema`` alone."""
        self._history = [schema]
        self._index = 0
        self._messages = [ChatMessage(MessageRole.ASSISTANT, WELCOME_MESSAGE)]
        self._last_error = None
        self._state = SessionState.READY
        logger.info("refinement.initialized", tables=schema.table_names())

    def _require_ready(self) -> None:
        if self._state is SessionState.IDLE:
            raise RuntimeError("No schema loaded; call initialize() first")
        if self._state is SessionState.PROCESSING:
            raise RuntimeError("A message is already being processed in this session")

    def accept_schema(self, schema: EntitySchema) -> None:
        """Truncate any redo branch, then push ``schema`` as current."""
        if self._state is SessionState.IDLE:
            raise RuntimeError("No schema loaded; call initialize() first")
        self._history = self._history[: self._index + 1]
        self._history.append(schema)
        self._index += 1

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self._index -= 1
        self._messages.append(ChatMessage(MessageRole.SYSTEM, "Undid last change"))
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self._index += 1
        self._messages.append(ChatMessage(MessageRole.SYSTEM, "Redid change"))
        return True

    # Collaborator round trip

    def _fail(self, intent: Optional[RefineIntent], error: str, errors: Sequence[str] = ()) -> RefinementOutcome:
        self._last_error = error
        reply = ChatMessage(
            MessageRole.ASSISTANT,
            f"I couldn't apply that change: {error}. Please try rephrasing your request.",
            metadata={"error": error, "intent": intent.value if intent else None},
        )
        self._messages.append(reply)
        logger.warning("refinement.rejected", error=error, intent=intent.value if intent else None)
        return RefinementOutcome(accepted=False, reply=reply, intent=intent, errors=list(errors) or [error])

    async def _call_collaborator(self, request: RefinementRequest) -> RefinementResponse:
        try:
            raw = await asyncio.wait_for(self.collaborator.refine(request), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise AIServiceError(f"AI service timed out after {self.timeout:g}s") from exc
        except AIServiceError:
            raise
        except Exception as exc:
            raise AIServiceError(f"AI service failed: {exc}") from exc
        return parse_response(raw)

    def _candidate(self, response: RefinementResponse) -> Dict[str, Any]:
        if response.updated_schema is not None:
            return response.updated_schema
        return apply_changes_to_payload(self.current_schema.to_payload(), parse_changes(response.changes))

    async def submit_message(self, text: str) -> RefinementOutcome:
        """
        Send ``text`` to the collaborator and accept the result if it validates.

        Returns:
            RefinementOutcome; ``accepted`` is False when the candidate was
            rejected or the collaborator only replied
        """
        self._require_ready()
        self._messages.append(ChatMessage(MessageRole.USER, text))
        self._state = SessionState.PROCESSING
        self._last_error = None
        intent: Optional[RefineIntent] = None
        try:
            request = RefinementRequest(
                message=text,
                current_schema=self.current_schema,
                last_messages=self._messages[-self.window:] if self.window > 0 else [],
            )
            try:
                response = await self._call_collaborator(request)
            except AIServiceError as exc:
                return self._fail(None, str(exc))
            intent = response.intent

            if intent is RefineIntent.CLARIFY or (not response.changes and response.updated_schema is None):
                reply = ChatMessage(
                    MessageRole.ASSISTANT,
                    response.response_message or response.reasoning,
                    metadata={"intent": intent.value},
                )
                self._messages.append(reply)
                return RefinementOutcome(accepted=False, reply=reply, intent=intent)

            try:
                candidate = self._candidate(response)
            except ChangeSetError as exc:
                return self._fail(intent, str(exc))

            result = self.validator(candidate)
            if not result.passed:
                rules = ", ".join(result.rules_failed())
                return self._fail(
                    intent,
                    f"the proposed schema failed validation ({rules})",
                    [f"{e.rule.value}: {e.message}" for e in result.errors],
                )

            self.accept_schema(result.schema)
            reply = ChatMessage(
                MessageRole.ASSISTANT,
                response.response_message or "Schema updated.",
                metadata={
                    "intent": intent.value,
                    "reasoning": response.reasoning,
                    "changes": list(response.changes),
                },
            )
            self._messages.append(reply)
            logger.info(
                "refinement.accepted",
                intent=intent.value,
                history_index=self._index,
                tables=result.schema.table_names(),
            )
            return RefinementOutcome(accepted=True, reply=reply, intent=intent, schema=result.schema)
        finally:
            self._state = SessionState.READY


__all__ = ["RefinementSession", "WELCOME_MESSAGE"]
