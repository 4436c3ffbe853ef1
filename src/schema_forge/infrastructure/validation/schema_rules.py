"""Structural and security rules for candidate schemas.

Each ``check_*`` function inspects one concern and returns a list of
``ValidationErrorDetail``; ``validate`` runs all of them and accumulates the
errors. Validation is fail-closed: a single error means the schema must not
reach the compiler.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from schema_forge.exceptions import SchemaValidationError
from schema_forge.infrastructure.schema.core import (
    AUDIT_COLUMNS,
    NUMERIC_TYPES,
    TEMPORAL_TYPES,
    ColumnDefinition,
    ColumnType,
    EntitySchema,
    TableDefinition,
)
from schema_forge.infrastructure.sql.core.literals import DefaultKind, classify_default
from schema_forge.utils.logging import get_logger

from .types import SchemaLimits, ValidationErrorDetail, ValidationResult, ValidationRule

logger = get_logger(__name__)

# PostgreSQL reserved keywords that cannot be used as table/column names
POSTGRES_RESERVED = frozenset(
    {
        "all", "alter", "analyse", "analyze", "and", "any", "array", "as", "asc",
        "both", "case", "cast", "check", "collate", "column", "constraint",
        "create", "cross", "current_date", "current_time", "current_timestamp",
        "current_user", "default", "delete", "desc", "distinct", "do", "drop",
        "else", "end", "except", "false", "fetch", "for", "foreign", "from",
        "grant", "group", "having", "in", "index", "insert", "intersect", "into",
        "is", "join", "leading", "limit", "not", "null", "offset", "on", "only",
        "or", "order", "primary", "references", "replace", "returning", "select",
        "session_user", "some", "table", "then", "to", "trailing", "true",
        "truncate", "union", "unique", "update", "user", "using", "when", "where",
        "window", "with",
    }
)

IDENTIFIER_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
MAX_STRING_DEFAULT_LENGTH = 255

SchemaInput = Union[EntitySchema, Mapping[str, Any]]


def _format_location(loc: tuple) -> str:
    parts: List[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(("." if parts else "") + str(item))
    return "".join(parts) or "schema"


def check_shape(candidate: Mapping[str, Any]) -> tuple:
    """Parse a raw mapping; returns ``(schema | None, errors)``."""
    if not isinstance(candidate, Mapping):
        return None, [
            ValidationErrorDetail(
                ValidationRule.SHAPE,
                "schema",
                f"Schema must be a JSON object, got {type(candidate).__name__}",
            )
        ]
    try:
        return EntitySchema.from_payload(candidate), []
    except PydanticValidationError as exc:
        errors = [
            ValidationErrorDetail(
                ValidationRule.SHAPE, _format_location(tuple(err["loc"])), err["msg"]
            )
            for err in exc.errors()
        ]
        return None, errors


def _dependency_graph(schema: EntitySchema) -> Dict[str, List[str]]:
    """Directed graph table -> referenced tables (only tables in the schema)."""
    names = set(schema.table_names())
    graph: Dict[str, List[str]] = {}
    for table in schema.tables:
        deps: List[str] = []
        for col in table.foreign_keys():
            target = col.references.table
            if target in names and target not in deps:
                deps.append(target)
        graph[table.name] = deps
    return graph


def _find_cycles(graph: Dict[str, List[str]]) -> List[List[str]]:
    """DFS with recursion-stack tracking; returns one path per distinct cycle."""
    visited: Set[str] = set()
    cycles: List[List[str]] = []
    seen_members: Set[frozenset] = set()

    def visit(node: str, stack: List[str]) -> None:
        visited.add(node)
        stack.append(node)
        for neighbor in graph.get(node, []):
            if neighbor in stack:
                cycle = stack[stack.index(neighbor):] + [neighbor]
                key = frozenset(cycle)
                if key not in seen_members:
                    seen_members.add(key)
                    cycles.append(cycle)
            elif neighbor not in visited:
                visit(neighbor, stack)
        stack.pop()

    for node in graph:
        if node not in visited:
            visit(node, [])
    return cycles


def _longest_chain(graph: Dict[str, List[str]]) -> Dict[str, int]:
    """Longest outgoing reference chain (in edges) per table; graph must be acyclic."""
    memo: Dict[str, int] = {}

    def depth(node: str) -> int:
        if node not in memo:
            memo[node] = max((depth(n) + 1 for n in graph.get(node, [])), default=0)
        return memo[node]

    for node in graph:
        depth(node)
    return memo


def check_structure(schema: EntitySchema, limits: SchemaLimits) -> List[ValidationErrorDetail]:
    """Table/column counts, version format and reference nesting depth."""
    errors: List[ValidationErrorDetail] = []
    rule = ValidationRule.STRUCTURE

    if not SEMVER_PATTERN.match(schema.version):
        errors.append(
            ValidationErrorDetail(
                rule, "version",
                f"Version must be semver format (e.g., 1.0.0), got '{schema.version}'",
            )
        )

    if not schema.tables:
        errors.append(ValidationErrorDetail(rule, "tables", "Schema must have at least one table"))
    elif len(schema.tables) > limits.max_tables:
        errors.append(
            ValidationErrorDetail(
                rule, "tables",
                f"Schema cannot have more than {limits.max_tables} tables "
                f"(got {len(schema.tables)})",
            )
        )

    for table in schema.tables:
        if not table.columns:
            errors.append(
                ValidationErrorDetail(rule, table.name, f"Table '{table.name}' must have at least one column")
            )
        elif len(table.columns) > limits.max_columns_per_table:
            errors.append(
                ValidationErrorDetail(
                    rule, table.name,
                    f"Table '{table.name}' cannot have more than "
                    f"{limits.max_columns_per_table} columns (got {len(table.columns)})",
                )
            )

    graph = _dependency_graph(schema)
    if not _find_cycles(graph):
        for table_name, chain in _longest_chain(graph).items():
            if chain > limits.max_reference_depth:
                errors.append(
                    ValidationErrorDetail(
                        rule, table_name,
                        f"Table '{table_name}' has a reference chain of depth {chain}, "
                        f"maximum is {limits.max_reference_depth}",
                    )
                )
    return errors


def _check_identifier(kind: str, name: str, location: str, limits: SchemaLimits) -> Optional[ValidationErrorDetail]:
    if len(name) > limits.max_identifier_length:
        return ValidationErrorDetail(
            ValidationRule.NAMING, location,
            f"{kind} name '{name}' exceeds {limits.max_identifier_length} characters",
        )
    if not IDENTIFIER_PATTERN.match(name):
        return ValidationErrorDetail(
            ValidationRule.NAMING, location,
            f"{kind} name '{name}' must be lowercase snake_case starting with a letter",
        )
    return None


def check_naming(schema: EntitySchema, limits: SchemaLimits) -> List[ValidationErrorDetail]:
    """Identifier format and uniqueness of table, column and index names."""
    errors: List[ValidationErrorDetail] = []
    seen_tables: Set[str] = set()
    seen_indexes: Set[str] = set()

    for table in schema.tables:
        error = _check_identifier("Table", table.name, table.name, limits)
        if error:
            errors.append(error)
        if table.name in seen_tables:
            errors.append(
                ValidationErrorDetail(ValidationRule.NAMING, table.name, f"Duplicate table name '{table.name}'")
            )
        seen_tables.add(table.name)

        seen_columns: Set[str] = set()
        for col in table.columns:
            location = f"{table.name}.{col.name}"
            error = _check_identifier("Column", col.name, location, limits)
            if error:
                errors.append(error)
            if col.name in seen_columns:
                errors.append(
                    ValidationErrorDetail(
                        ValidationRule.NAMING, location,
                        f"Duplicate column '{col.name}' in table '{table.name}'",
                    )
                )
            seen_columns.add(col.name)

        for index in table.indexes:
            location = f"{table.name}.indexes.{index.name}"
            error = _check_identifier("Index", index.name, location, limits)
            if error:
                errors.append(error)
            if index.name in seen_indexes:
                errors.append(
                    ValidationErrorDetail(ValidationRule.NAMING, location, f"Duplicate index name '{index.name}'")
                )
            seen_indexes.add(index.name)
    return errors


def check_reserved_words(schema: EntitySchema) -> List[ValidationErrorDetail]:
    """No table or column may be named after a PostgreSQL reserved keyword."""
    errors: List[ValidationErrorDetail] = []
    for table in schema.tables:
        if table.name.lower() in POSTGRES_RESERVED:
            errors.append(
                ValidationErrorDetail(
                    ValidationRule.RESERVED_WORD, table.name,
                    f"Table name '{table.name}' is a PostgreSQL reserved word",
                )
            )
        for col in table.columns:
            if col.name.lower() in POSTGRES_RESERVED:
                errors.append(
                    ValidationErrorDetail(
                        ValidationRule.RESERVED_WORD, f"{table.name}.{col.name}",
                        f"Column '{table.name}.{col.name}' uses a PostgreSQL reserved word",
                    )
                )
    return errors


def _audit_column_errors(table: TableDefinition) -> List[ValidationErrorDetail]:
    errors: List[ValidationErrorDetail] = []
    rule = ValidationRule.AUDIT_COLUMNS

    def err(column: str, message: str) -> None:
        errors.append(ValidationErrorDetail(rule, f"{table.name}.{column}", message))

    for name in AUDIT_COLUMNS:
        if table.get_column(name) is None:
            err(name, f"{table.name} missing '{name}' audit column")

    id_col = table.get_column("id")
    if id_col is not None:
        if not id_col.primary_key:
            err("id", f"{table.name}.id must be the primary key")
        if id_col.type is not ColumnType.UUID:
            err("id", f"{table.name}.id must be UUID, got {id_col.type.value}")

    user_col = table.get_column("user_id")
    if user_col is not None:
        if user_col.nullable:
            err("user_id", f"{table.name}.user_id must be NOT NULL")
        if user_col.type is not ColumnType.UUID:
            err("user_id", f"{table.name}.user_id must be UUID, got {user_col.type.value}")

    for name in ("created_at", "updated_at"):
        col = table.get_column(name)
        if col is None:
            continue
        if col.nullable:
            err(name, f"{table.name}.{name} must be NOT NULL")
        if col.type not in (ColumnType.TIMESTAMP, ColumnType.TIMESTAMPTZ):
            err(name, f"{table.name}.{name} must be a timestamp, got {col.type.value}")

    for col in table.columns:
        if col.primary_key and col.name != "id":
            err(col.name, f"{table.name}.{col.name} cannot be a primary key; 'id' is the primary key")
    return errors


def check_audit_columns(schema: EntitySchema) -> List[ValidationErrorDetail]:
    """Every table carries id (PK), user_id (NOT NULL), created_at, updated_at."""
    errors: List[ValidationErrorDetail] = []
    for table in schema.tables:
        errors.extend(_audit_column_errors(table))
    return errors


def check_referential_integrity(schema: EntitySchema) -> List[ValidationErrorDetail]:
    """Foreign keys, relationships and index columns point at things that exist."""
    errors: List[ValidationErrorDetail] = []
    rule = ValidationRule.REFERENTIAL_INTEGRITY
    tables = {t.name: t for t in schema.tables}

    for table in schema.tables:
        for col in table.foreign_keys():
            ref = col.references
            location = f"{table.name}.{col.name}"
            target = tables.get(ref.table)
            if target is None:
                errors.append(
                    ValidationErrorDetail(
                        rule, location,
                        f"{table.name}.{col.name} references non-existent table '{ref.table}'",
                    )
                )
            elif target.get_column(ref.column) is None:
                errors.append(
                    ValidationErrorDetail(
                        rule, location,
                        f"{table.name}.{col.name} references non-existent column "
                        f"'{ref.table}.{ref.column}'",
                    )
                )

        column_names = set(table.column_names())
        for index in table.indexes:
            if not index.columns:
                errors.append(
                    ValidationErrorDetail(
                        rule, f"{table.name}.indexes.{index.name}",
                        f"Index '{index.name}' must cover at least one column",
                    )
                )
            for column in index.columns:
                if column not in column_names:
                    errors.append(
                        ValidationErrorDetail(
                            rule, f"{table.name}.indexes.{index.name}",
                            f"Index '{index.name}' references non-existent column '{table.name}.{column}'",
                        )
                    )

    for i, rel in enumerate(schema.relationships):
        location = f"relationships[{i}]"
        for side, table_name, column_name in (
            ("from", rel.from_table, rel.from_column),
            ("to", rel.to_table, rel.to_column),
        ):
            table = tables.get(table_name)
            if table is None:
                errors.append(
                    ValidationErrorDetail(
                        rule, location,
                        f"Relationship {side}_table '{table_name}' does not exist",
                    )
                )
            elif table.get_column(column_name) is None:
                errors.append(
                    ValidationErrorDetail(
                        rule, location,
                        f"Relationship {side}_column '{table_name}.{column_name}' does not exist",
                    )
                )
    return errors


def check_circular_dependencies(schema: EntitySchema) -> List[ValidationErrorDetail]:
    """Reject any cycle in the foreign-key graph, self-references included."""
    return [
        ValidationErrorDetail(
            ValidationRule.CIRCULAR_DEPENDENCY,
            cycle[0],
            f"Circular dependency detected: {' -> '.join(cycle)}",
        )
        for cycle in _find_cycles(_dependency_graph(schema))
    ]


def _default_error(table: TableDefinition, col: ColumnDefinition) -> Optional[str]:
    kind, value = classify_default(col.default)
    col_type = col.type

    if kind is DefaultKind.EXPRESSION:
        if value == "NULL":
            return None if col.nullable else "NULL default on a NOT NULL column"
        if value == "gen_random_uuid()":
            return None if col_type is ColumnType.UUID else "gen_random_uuid() requires a UUID column"
        return None if col_type in TEMPORAL_TYPES else f"{value} requires a date or timestamp column"
    if col_type is ColumnType.BOOLEAN:
        return None if kind is DefaultKind.BOOLEAN else "BOOLEAN columns need a true/false default"
    if col_type in NUMERIC_TYPES:
        return None if kind is DefaultKind.NUMBER else f"{col_type.value} columns need a numeric default"
    if kind is DefaultKind.BOOLEAN:
        return f"Boolean default on a {col_type.value} column"
    if kind is DefaultKind.STRING and len(value) > MAX_STRING_DEFAULT_LENGTH:
        return f"String default exceeds {MAX_STRING_DEFAULT_LENGTH} characters"
    return None


def check_default_values(schema: EntitySchema) -> List[ValidationErrorDetail]:
    """Defaults must classify to something compatible with the column type."""
    errors: List[ValidationErrorDetail] = []
    for table in schema.tables:
        for col in table.columns:
            if col.default is None:
                continue
            problem = _default_error(table, col)
            if problem:
                errors.append(
                    ValidationErrorDetail(
                        ValidationRule.DEFAULT_VALUE,
                        f"{table.name}.{col.name}",
                        f"Invalid default for {table.name}.{col.name}: {problem}",
                    )
                )
    return errors


def validate(candidate: SchemaInput, limits: Optional[SchemaLimits] = None) -> ValidationResult:
    """
    Run every rule against a candidate schema and aggregate the errors.

    Args:
        candidate: ``EntitySchema`` or the raw JSON mapping from the collaborator
        limits: Structural limits; defaults to the configured settings

    Returns:
        ValidationResult with ``passed`` False if any rule produced an error
    """
    limits = limits or SchemaLimits.from_settings()

    if isinstance(candidate, EntitySchema):
        schema = candidate
    else:
        schema, shape_errors = check_shape(candidate)
        if schema is None:
            logger.info("validation.failed", rules=["shape"], error_count=len(shape_errors))
            return ValidationResult(passed=False, errors=shape_errors)

    errors: List[ValidationErrorDetail] = []
    errors.extend(check_structure(schema, limits))
    errors.extend(check_naming(schema, limits))
    errors.extend(check_reserved_words(schema))
    errors.extend(check_audit_columns(schema))
    errors.extend(check_referential_integrity(schema))
    errors.extend(check_circular_dependencies(schema))
    errors.extend(check_default_values(schema))

    result = ValidationResult(passed=not errors, errors=errors, schema=schema)
    if errors:
        logger.info(
            "validation.failed",
            rules=result.rules_failed(),
            error_count=len(errors),
            tables=schema.table_names(),
        )
    else:
        logger.debug("validation.passed", tables=schema.table_names(), version=schema.version)
    return result


def ensure_valid(candidate: SchemaInput, limits: Optional[SchemaLimits] = None) -> EntitySchema:
    """Validate and return the parsed schema, raising ``SchemaValidationError`` on failure."""
    result = validate(candidate, limits)
    if not result.passed:
        raise SchemaValidationError(result.errors)
    return result.schema


__all__ = [
    "POSTGRES_RESERVED",
    "check_shape",
    "check_structure",
    "check_naming",
    "check_reserved_words",
    "check_audit_columns",
    "check_referential_integrity",
    "check_circular_dependencies",
    "check_default_values",
    "validate",
    "ensure_valid",
]
