"""Convert schema tables into registry resources."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from schema_forge.infrastructure.schema.core import (
    ColumnDefinition,
    ColumnType,
    EntitySchema,
    TableDefinition,
)

from .models import CompiledEntity, FieldType, ResourceField, ResourceRelationship

COLUMN_FIELD_TYPES = {
    ColumnType.TEXT: FieldType.TEXT,
    ColumnType.VARCHAR: FieldType.TEXT,
    ColumnType.INTEGER: FieldType.NUMBER,
    ColumnType.BIGINT: FieldType.NUMBER,
    ColumnType.NUMERIC: FieldType.CURRENCY,
    ColumnType.BOOLEAN: FieldType.BOOLEAN,
    ColumnType.DATE: FieldType.DATE,
    ColumnType.TIMESTAMP: FieldType.DATE,
    ColumnType.TIMESTAMPTZ: FieldType.DATE,
    ColumnType.UUID: FieldType.TEXT,
    ColumnType.JSONB: FieldType.TEXTAREA,
}
FIELD_TYPE_VALUES = frozenset(t.value for t in FieldType)


def humanize(name: str) -> str:
    """``deal_stage`` -> ``Deal Stage``."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_") if word)


def pluralize(name: str) -> str:
    return name if name.endswith("s") else f"{name}s"


def _field_type(column: ColumnDefinition, hints: Dict[str, Any]) -> FieldType:
    hinted = hints.get("type")
    if isinstance(hinted, str) and hinted in FIELD_TYPE_VALUES:
        return FieldType(hinted)
    return COLUMN_FIELD_TYPES.get(column.type, FieldType.TEXT)


def _flag(hints: Dict[str, Any], key: str) -> bool:
    value = hints.get(key)
    return value if isinstance(value, bool) else True


def convert_column_to_field(column: ColumnDefinition, hints: Optional[Dict[str, Any]] = None) -> ResourceField:
    """Hint values of the wrong type are ignored in favour of the column-derived defaults."""
    hints = hints if isinstance(hints, dict) else {}
    label = hints.get("label")
    return ResourceField(
        name=column.name,
        type=_field_type(column, hints),
        required=not column.nullable,
        display_name=label if isinstance(label, str) and label.strip() else humanize(column.name),
        filterable=_flag(hints, "filterable"),
        sortable=_flag(hints, "sortable"),
        related_resource=column.references.table if column.references else None,
    )


def convert_table_to_resource(table: TableDefinition) -> CompiledEntity:
    ui = table.ui_hints
    plural_name = pluralize(table.name)
    singular_label = ui.label or humanize(table.name)
    plural_label = f"{singular_label}s"

    fields = [convert_column_to_field(col, ui.columns.get(col.name)) for col in table.columns]
    relationships: List[ResourceRelationship] = [
        ResourceRelationship(
            name=col.name[:-3] if col.name.endswith("_id") else col.name,
            related_resource=col.references.table,
            foreign_key_column=col.name,
        )
        for col in table.foreign_keys()
    ]

    return CompiledEntity(
        name=table.name,
        plural_name=plural_name,
        singular_label=singular_label,
        plural_label=plural_label,
        icon=ui.icon or "Database",
        description=ui.description or f"Manage {plural_label.lower()}",
        color=ui.color or "blue",
        fields=fields,
        relationships=relationships,
        route=f"/{plural_name}",
    )


def convert_schema_to_resources(schema: EntitySchema) -> List[CompiledEntity]:
    return [convert_table_to_resource(table) for table in schema.tables]


__all__ = [
    "COLUMN_FIELD_TYPES",
    "humanize",
    "pluralize",
    "convert_column_to_field",
    "convert_table_to_resource",
    "convert_schema_to_resources",
]
