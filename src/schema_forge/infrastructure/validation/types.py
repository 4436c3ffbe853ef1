"""Validation types for the schema validator.

This module defines shared types used across validation rules:
- ValidationRule: Names of the independent rule groups
- ValidationErrorDetail: Structured error with rule and location
- ValidationResult: Aggregated pass/fail outcome
- SchemaLimits: Structural limits (tables, columns, reference depth)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from schema_forge.config import Settings, get_settings

if TYPE_CHECKING:
    from schema_forge.infrastructure.schema.core import EntitySchema


class ValidationRule(str, Enum):
    """Rule groups run by the validator; each can fail independently."""

    SHAPE = "shape"
    STRUCTURE = "structure"
    NAMING = "naming"
    RESERVED_WORD = "reserved_word"
    AUDIT_COLUMNS = "audit_columns"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    DEFAULT_VALUE = "default_value"


@dataclass(frozen=True)
class ValidationErrorDetail:
    """Structured validation error.

    Attributes:
        rule: Rule group that failed
        location: Where the problem is (``deal.company_id``, ``relationships[0]``)
        message: Actionable, human-readable description

    Example:
        >>> ValidationErrorDetail(
        ...     rule=ValidationRule.RESERVED_WORD,
        ...     location="order",
        ...     message="Table name 'order' is a PostgreSQL reserved word",
        ... )
    """

    rule: ValidationRule
    location: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"rule": self.rule.value, "location": self.location, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of one validation pass.

    ``schema`` holds the parsed schema when the input had a valid shape, so
    callers that validated a raw mapping do not need to parse it twice.
    """

    passed: bool
    errors: List[ValidationErrorDetail] = field(default_factory=list)
    schema: Optional["EntitySchema"] = None

    def rules_failed(self) -> List[str]:
        """Distinct failed rule names, in first-seen order."""
        seen: List[str] = []
        for error in self.errors:
            if error.rule.value not in seen:
                seen.append(error.rule.value)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "errors": [e.to_dict() for e in self.errors]}


@dataclass(frozen=True)
class SchemaLimits:
    """Structural limits enforced by the ``structure`` and ``naming`` rules."""

    max_tables: int = 15
    max_columns_per_table: int = 50
    max_reference_depth: int = 3
    max_identifier_length: int = 63

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SchemaLimits":
        settings = settings or get_settings()
        return cls(
            max_tables=settings.max_tables,
            max_columns_per_table=settings.max_columns_per_table,
            max_reference_depth=settings.max_reference_depth,
            max_identifier_length=settings.max_identifier_length,
        )


__all__ = [
    "ValidationRule",
    "ValidationErrorDetail",
    "ValidationResult",
    "SchemaLimits",
]
