"""Conversational schema refinement: changesets, collaborator boundary and session."""

from .changeset import (
    AddColumn,
    AddRelationship,
    AddTable,
    DeleteColumn,
    DeleteRelationship,
    DeleteTable,
    ModifyColumn,
    ModifyTable,
    ModifyUIHints,
    SchemaChange,
    apply_changes,
    apply_changes_to_payload,
    parse_change,
    parse_changes,
)
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
from .session import RefinementSession

__all__ = [
    "AddColumn",
    "AddRelationship",
    "AddTable",
    "DeleteColumn",
    "DeleteRelationship",
    "DeleteTable",
    "ModifyColumn",
    "ModifyTable",
    "ModifyUIHints",
    "SchemaChange",
    "apply_changes",
    "apply_changes_to_payload",
    "parse_change",
    "parse_changes",
    "RefinementCollaborator",
    "parse_response",
    "ChatMessage",
    "MessageRole",
    "RefineIntent",
    "RefinementOutcome",
    "RefinementRequest",
    "RefinementResponse",
    "SessionState",
    "RefinementSession",
]
