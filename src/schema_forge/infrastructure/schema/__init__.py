"""Infrastructure-level schema definitions.

Only the data model is re-exported here so that the validator can depend on
it without importing the compiler. Import DDL generation from
``schema_forge.infrastructure.schema.ddl_generator``.
"""

from .core import (
    AUDIT_COLUMNS,
    Cardinality,
    ColumnDefinition,
    ColumnReference,
    ColumnType,
    EntitySchema,
    IndexDefinition,
    OnDeleteAction,
    Relationship,
    TableDefinition,
    UIHints,
    audit_column_definitions,
)

__all__ = [
    "AUDIT_COLUMNS",
    "ColumnType",
    "OnDeleteAction",
    "Cardinality",
    "ColumnReference",
    "ColumnDefinition",
    "IndexDefinition",
    "UIHints",
    "TableDefinition",
    "Relationship",
    "EntitySchema",
    "audit_column_definitions",
]
