"""Error taxonomy for the schema compiler, version store and registry.

Every error carries a ``to_dict()`` for structured logging. Only
``ProvisioningError`` is routinely caught and aggregated (per table in the
per-entity executor); the others propagate to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from schema_forge.infrastructure.validation.types import ValidationErrorDetail


class SchemaForgeError(Exception):
    """Base class for all SchemaForge errors."""

    error_type = "SchemaForgeError"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to structured dict for logging."""
        return {"error_type": self.error_type, "message": str(self)}


class SchemaValidationError(SchemaForgeError):
    """A candidate schema violated one or more structural or security rules."""

    error_type = "ValidationError"

    def __init__(self, errors: Sequence["ValidationErrorDetail"], message: Optional[str] = None):
        self.errors: List["ValidationErrorDetail"] = list(errors)
        if message is None:
            message = f"Schema validation failed with {len(self.errors)} error(s)"
            if self.errors:
                message += ": " + "; ".join(e.message for e in self.errors[:5])
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data


class CompilationError(SchemaForgeError):
    """The compiler was handed something it must never compile.

    Reaching this means a caller skipped validation; it is a programming
    invariant violation rather than a user error.
    """

    error_type = "CompilationError"


class ProvisioningError(SchemaForgeError):
    """The database rejected provisioning statements."""

    error_type = "ProvisioningError"

    def __init__(self, message: str, table: Optional[str] = None, original_error: Optional[Exception] = None):
        self.table = table
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.table:
            return f"Failed to provision '{self.table}': {self.args[0]}"
        return str(self.args[0])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["table"] = self.table
        if self.original_error is not None:
            data["original_error_type"] = type(self.original_error).__name__
            data["original_error_message"] = str(self.original_error)
        return data


class AIServiceError(SchemaForgeError):
    """The AI collaborator failed, timed out or returned unusable output."""

    error_type = "AIServiceError"


class ChangeSetError(SchemaForgeError):
    """A collaborator delta is malformed or targets something that does not exist."""

    error_type = "ChangeSetError"


class ConcurrencyError(SchemaForgeError):
    """A schema edit lock is held elsewhere or a version activation raced."""

    error_type = "ConcurrencyError"

    def __init__(self, message: str, project_id: Optional[str] = None, held_by: Optional[str] = None, expires_at: Any = None):
        self.project_id = project_id
        self.held_by = held_by
        self.expires_at = expires_at
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "project_id": self.project_id,
                "held_by": self.held_by,
                "expires_at": self.expires_at.isoformat() if hasattr(self.expires_at, "isoformat") else self.expires_at,
            }
        )
        return data


class VersionNotFoundError(SchemaForgeError, KeyError):
    """A schema version id does not exist."""

    error_type = "VersionNotFoundError"

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Schema version '{version_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


__all__ = [
    "SchemaForgeError",
    "SchemaValidationError",
    "CompilationError",
    "ProvisioningError",
    "AIServiceError",
    "ChangeSetError",
    "ConcurrencyError",
    "VersionNotFoundError",
]
