"""Schema Validation Infrastructure.

Structural and security validation for candidate schemas proposed by the AI
collaborator. Every rule is a standalone function; ``validate`` runs them all
and accumulates their errors into one fail-closed result.

Components:
- types: Shared types (ValidationRule, ValidationErrorDetail, ValidationResult, SchemaLimits)
- schema_rules: Rule functions plus ``validate`` / ``ensure_valid``

Usage:
    >>> from schema_forge.infrastructure.validation import validate, ensure_valid
    >>>
    >>> result = validate(candidate_payload)
    >>> if not result.passed:
    ...     for error in result.errors:
    ...         print(error.rule.value, error.location, error.message)
    >>>
    >>> schema = ensure_valid(candidate_payload)  # raises SchemaValidationError
"""

from schema_forge.infrastructure.validation.schema_rules import (
    POSTGRES_RESERVED,
    check_audit_columns,
    check_circular_dependencies,
    check_default_values,
    check_naming,
    check_referential_integrity,
    check_reserved_words,
    check_shape,
    check_structure,
    ensure_valid,
    validate,
)
from schema_forge.infrastructure.validation.types import (
    SchemaLimits,
    ValidationErrorDetail,
    ValidationResult,
    ValidationRule,
)

__all__ = [
    # Types
    "ValidationRule",
    "ValidationErrorDetail",
    "ValidationResult",
    "SchemaLimits",
    # Rules
    "POSTGRES_RESERVED",
    "check_shape",
    "check_structure",
    "check_naming",
    "check_reserved_words",
    "check_audit_columns",
    "check_referential_integrity",
    "check_circular_dependencies",
    "check_default_values",
    # Entry points
    "validate",
    "ensure_valid",
]
