"""Messages, requests and responses exchanged during schema refinement."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from schema_forge.infrastructure.schema.core import EntitySchema


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class RefineIntent(str, Enum):
    """What the collaborator understood the user to be asking for."""

    ADD_TABLE = "ADD_TABLE"
    MODIFY_TABLE = "MODIFY_TABLE"
    DELETE_TABLE = "DELETE_TABLE"
    ADD_COLUMN = "ADD_COLUMN"
    MODIFY_COLUMN = "MODIFY_COLUMN"
    DELETE_COLUMN = "DELETE_COLUMN"
    ADD_RELATIONSHIP = "ADD_RELATIONSHIP"
    MODIFY_UI = "MODIFY_UI"
    ADD_FEATURE = "ADD_FEATURE"
    FIX_ERROR = "FIX_ERROR"
    CLARIFY = "CLARIFY"
    OTHER = "OTHER"


class SessionState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    PROCESSING = "processing"


@dataclass(frozen=True)
class ChatMessage:
    role: MessageRole
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class RefinementRequest:
    """What the collaborator receives: the message, the live schema and recent context."""

    message: str
    current_schema: EntitySchema
    last_messages: List[ChatMessage] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "current_schema": self.current_schema.to_payload(),
            "last_messages": [m.to_dict() for m in self.last_messages],
        }


class RefinementResponse(BaseModel):
    """Collaborator reply.

    ``changes`` stay in the collaborator's raw delta format and are parsed by
    ``schema_forge.domain.refinement.changeset.parse_change``;
    ``updated_schema`` is left raw so the validator reports its shape errors.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    intent: RefineIntent = RefineIntent.OTHER
    reasoning: str = ""
    changes: List[Dict[str, Any]] = Field(default_factory=list)
    updated_schema: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("updated_schema", "updatedSchema")
    )
    response_message: str = Field(
        default="", validation_alias=AliasChoices("response_message", "message")
    )


@dataclass(frozen=True)
class RefinementOutcome:
    """Result of one ``submit_message`` call."""

    accepted: bool
    reply: ChatMessage
    intent: Optional[RefineIntent] = None
    schema: Optional[EntitySchema] = None
    errors: List[str] = field(default_factory=list)


__all__ = [
    "MessageRole",
    "RefineIntent",
    "SessionState",
    "ChatMessage",
    "RefinementRequest",
    "RefinementResponse",
    "RefinementOutcome",
]
