"""Core entity schema types for SchemaForge.

These models describe the candidate schema exchanged with the AI
collaborator: ``{version, tables[], relationships[]}``. They are strict about
shape (types, enums, required keys) and lenient about counts and naming; the
validator reports those so that every problem lands in one error list.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

AUDIT_COLUMNS: Tuple[str, ...] = ("id", "user_id", "created_at", "updated_at")


class ColumnType(str, Enum):
    """Physical column types a schema may declare."""

    UUID = "UUID"
    TEXT = "TEXT"
    VARCHAR = "VARCHAR"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    BOOLEAN = "BOOLEAN"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    DATE = "DATE"
    NUMERIC = "NUMERIC"
    JSONB = "JSONB"
    TEXT_ARRAY = "TEXT[]"
    INTEGER_ARRAY = "INTEGER[]"
    UUID_ARRAY = "UUID[]"


NUMERIC_TYPES = frozenset({ColumnType.INTEGER, ColumnType.BIGINT, ColumnType.NUMERIC})
TEMPORAL_TYPES = frozenset({ColumnType.TIMESTAMP, ColumnType.TIMESTAMPTZ, ColumnType.DATE})


class OnDeleteAction(str, Enum):
    """Referential action applied when the referenced row is deleted."""

    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET NULL"
    NO_ACTION = "NO ACTION"


class Cardinality(str, Enum):
    """Declared cardinality of a relationship between two tables."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class ColumnReference(BaseModel):
    """Foreign-key target of a column."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    table: str
    column: str = "id"
    on_delete: OnDeleteAction = Field(
        default=OnDeleteAction.NO_ACTION,
        validation_alias="onDelete",
        serialization_alias="onDelete",
    )


class ColumnDefinition(BaseModel):
    """Definition of a single column in a table."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    type: ColumnType
    nullable: bool = True
    default: Optional[str] = None
    unique: bool = False
    primary_key: bool = Field(
        default=False,
        validation_alias="primaryKey",
        serialization_alias="primaryKey",
    )
    references: Optional[ColumnReference] = None

    @field_validator("default", mode="before")
    @classmethod
    def _stringify_default(cls, value: Any) -> Any:
        # The AI collaborator emits JSON booleans and numbers for defaults.
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return repr(value)
        return value


class IndexDefinition(BaseModel):
    """Definition of a declared index."""

    model_config = ConfigDict(extra="ignore")

    name: str
    columns: List[str]
    unique: bool = False


class UIHints(BaseModel):
    """Presentation hints carried through to the resource registry untouched."""

    model_config = ConfigDict(extra="allow")

    icon: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    columns: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class TableDefinition(BaseModel):
    """Definition of a single table (entity)."""

    model_config = ConfigDict(extra="ignore")

    name: str
    columns: List[ColumnDefinition] = Field(default_factory=list)
    indexes: List[IndexDefinition] = Field(default_factory=list)
    ui_hints: UIHints = Field(default_factory=UIHints)

    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[ColumnDefinition]:
        return next((c for c in self.columns if c.name == name), None)

    def foreign_keys(self) -> Iterator[ColumnDefinition]:
        """Yield columns that carry a foreign-key reference, in column order."""
        return (c for c in self.columns if c.references is not None)

    def business_columns(self) -> List[ColumnDefinition]:
        """Columns other than the mandatory audit columns."""
        return [c for c in self.columns if c.name not in AUDIT_COLUMNS]


class Relationship(BaseModel):
    """Declared relationship between two tables."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_table: str
    from_column: str
    to_table: str
    to_column: str = "id"
    cardinality: Cardinality = Field(
        default=Cardinality.MANY_TO_ONE,
        validation_alias="type",
        serialization_alias="type",
    )


class EntitySchema(BaseModel):
    """Complete candidate schema: ``{version, tables[], relationships[]}``."""

    model_config = ConfigDict(extra="ignore")

    version: str = "1.0.0"
    tables: List[TableDefinition] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)

    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[TableDefinition]:
        return next((t for t in self.tables if t.name == name), None)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict in the wire format (camelCase aliases preserved)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EntitySchema":
        """Parse the wire format; raises ``pydantic.ValidationError`` on bad shape."""
        return cls.model_validate(dict(payload))


def audit_column_definitions() -> List[ColumnDefinition]:
    """The canonical audit columns every table must carry.

    Used by the refinement reducer when the collaborator adds a table without
    them and by tests building fixtures.
    """
    return [
        ColumnDefinition(
            name="id", type=ColumnType.UUID, nullable=False, primary_key=True,
            default="gen_random_uuid()",
        ),
        ColumnDefinition(name="user_id", type=ColumnType.UUID, nullable=False),
        ColumnDefinition(
            name="created_at", type=ColumnType.TIMESTAMPTZ, nullable=False, default="now()"
        ),
        ColumnDefinition(
            name="updated_at", type=ColumnType.TIMESTAMPTZ, nullable=False, default="now()"
        ),
    ]


__all__ = [
    "AUDIT_COLUMNS",
    "NUMERIC_TYPES",
    "TEMPORAL_TYPES",
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
