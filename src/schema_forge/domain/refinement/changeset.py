"""Tagged schema changes and the pure reducer that applies them.

The collaborator describes edits as ``{type, target, tableName, columnName,
changes}`` deltas. ``parse_change`` turns each delta into one of the change
classes below; ``apply_changes`` folds a list of them over a schema and
returns a new schema without touching its input.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union

from schema_forge.exceptions import ChangeSetError
from schema_forge.infrastructure.schema.core import AUDIT_COLUMNS, EntitySchema, audit_column_definitions

Payload = Dict[str, Any]


@dataclass(frozen=True)
class AddTable:
    table: Payload


@dataclass(frozen=True)
class ModifyTable:
    table_name: str
    changes: Payload = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteTable:
    table_name: str


@dataclass(frozen=True)
class AddColumn:
    table_name: str
    column: Payload


@dataclass(frozen=True)
class ModifyColumn:
    table_name: str
    column_name: str
    changes: Payload = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteColumn:
    table_name: str
    column_name: str


@dataclass(frozen=True)
class AddRelationship:
    relationship: Payload


@dataclass(frozen=True)
class DeleteRelationship:
    from_table: str
    from_column: str


@dataclass(frozen=True)
class ModifyUIHints:
    table_name: str
    changes: Payload = field(default_factory=dict)


SchemaChange = Union[
    AddTable,
    ModifyTable,
    DeleteTable,
    AddColumn,
    ModifyColumn,
    DeleteColumn,
    AddRelationship,
    DeleteRelationship,
    ModifyUIHints,
]


def _require(delta: Mapping[str, Any], key: str) -> Any:
    value = delta.get(key)
    if value in (None, ""):
        raise ChangeSetError(
            f"Change {delta.get('type')}/{delta.get('target')} is missing '{key}'"
        )
    return value


def _changes(delta: Mapping[str, Any]) -> Payload:
    value = delta.get("changes") or {}
    if not isinstance(value, Mapping):
        raise ChangeSetError(
            f"Change {delta.get('type')}/{delta.get('target')} needs an object in 'changes'"
        )
    return dict(value)


def _table_changes(delta: Mapping[str, Any]) -> Payload:
    table = _changes(delta)
    columns = table.get("columns", [])
    if not isinstance(columns, list) or not all(isinstance(c, Mapping) for c in columns):
        raise ChangeSetError(
            f"Change {delta.get('type')}/table needs a list of column objects in 'changes.columns'"
        )
    return table


def parse_change(delta: Mapping[str, Any]) -> SchemaChange:
    """Parse one collaborator delta.

    Raises:
        ChangeSetError: For unknown type/target pairs or missing keys
    """
    if not isinstance(delta, Mapping):
        raise ChangeSetError(f"Change must be an object, got {type(delta).__name__}")
    kind = (delta.get("type"), delta.get("target"))

    if kind == ("add", "table"):
        return AddTable(_table_changes(delta))
    if kind == ("modify", "table"):
        return ModifyTable(_require(delta, "tableName"), _table_changes(delta))
    if kind == ("delete", "table"):
        return DeleteTable(_require(delta, "tableName"))
    if kind == ("add", "column"):
        return AddColumn(_require(delta, "tableName"), _changes(delta))
    if kind == ("modify", "column"):
        return ModifyColumn(_require(delta, "tableName"), _require(delta, "columnName"), _changes(delta))
    if kind == ("delete", "column"):
        return DeleteColumn(_require(delta, "tableName"), _require(delta, "columnName"))
    if kind == ("add", "relationship"):
        return AddRelationship(_changes(delta))
    if kind == ("delete", "relationship"):
        rel = _changes(delta)
        return DeleteRelationship(_require(rel, "from_table"), _require(rel, "from_column"))
    if kind in (("add", "ui_hints"), ("modify", "ui_hints")):
        return ModifyUIHints(_require(delta, "tableName"), _changes(delta))
    raise ChangeSetError(f"Unsupported change: type={kind[0]!r} target={kind[1]!r}")


def parse_changes(deltas: Sequence[Mapping[str, Any]]) -> List[SchemaChange]:
    return [parse_change(delta) for delta in deltas]


def _table(payload: Payload, name: str) -> Payload:
    for table in payload["tables"]:
        if table.get("name") == name:
            return table
    raise ChangeSetError(f"Table '{name}' does not exist")


def _column_index(table: Payload, name: str) -> int:
    for i, column in enumerate(table.get("columns", [])):
        if column.get("name") == name:
            return i
    raise ChangeSetError(f"Column '{table.get('name')}.{name}' does not exist")


def _add_table(payload: Payload, change: AddTable) -> None:
    table = copy.deepcopy(change.table)
    columns = table.setdefault("columns", [])
    present = {c.get("name") for c in columns}
    missing = [
        col.model_dump(mode="json", by_alias=True, exclude_none=True)
        for col in audit_column_definitions()
        if col.name not in present
    ]
    # id first, timestamps last, matching the canonical audit layout
    head = [c for c in missing if c["name"] in AUDIT_COLUMNS[:2]]
    tail = [c for c in missing if c["name"] in AUDIT_COLUMNS[2:]]
    table["columns"] = head + columns + tail
    payload["tables"].append(table)


def _modify_table(payload: Payload, change: ModifyTable) -> None:
    _table(payload, change.table_name).update(copy.deepcopy(change.changes))


def _delete_table(payload: Payload, change: DeleteTable) -> None:
    _table(payload, change.table_name)
    payload["tables"] = [t for t in payload["tables"] if t.get("name") != change.table_name]
    payload["relationships"] = [
        r
        for r in payload.get("relationships", [])
        if change.table_name not in (r.get("from_table"), r.get("to_table"))
    ]


def _add_column(payload: Payload, change: AddColumn) -> None:
    _table(payload, change.table_name).setdefault("columns", []).append(copy.deepcopy(change.column))


def _modify_column(payload: Payload, change: ModifyColumn) -> None:
    table = _table(payload, change.table_name)
    table["columns"][_column_index(table, change.column_name)].update(copy.deepcopy(change.changes))


def _delete_column(payload: Payload, change: DeleteColumn) -> None:
    table = _table(payload, change.table_name)
    del table["columns"][_column_index(table, change.column_name)]


def _add_relationship(payload: Payload, change: AddRelationship) -> None:
    payload.setdefault("relationships", []).append(copy.deepcopy(change.relationship))


def _delete_relationship(payload: Payload, change: DeleteRelationship) -> None:
    before = payload.get("relationships", [])
    after = [
        r
        for r in before
        if (r.get("from_table"), r.get("from_column")) != (change.from_table, change.from_column)
    ]
    if len(after) == len(before):
        raise ChangeSetError(
            f"Relationship from '{change.from_table}.{change.from_column}' does not exist"
        )
    payload["relationships"] = after


def _modify_ui_hints(payload: Payload, change: ModifyUIHints) -> None:
    table = _table(payload, change.table_name)
    table["ui_hints"] = {**table.get("ui_hints", {}), **copy.deepcopy(change.changes)}


_REDUCERS: Dict[type, Callable[[Payload, Any], None]] = {
    AddTable: _add_table,
    ModifyTable: _modify_table,
    DeleteTable: _delete_table,
    AddColumn: _add_column,
    ModifyColumn: _modify_column,
    DeleteColumn: _delete_column,
    AddRelationship: _add_relationship,
    DeleteRelationship: _delete_relationship,
    ModifyUIHints: _modify_ui_hints,
}


def apply_changes_to_payload(payload: Mapping[str, Any], changes: Sequence[SchemaChange]) -> Payload:
    """Apply ``changes`` in order to a copy of a wire-format schema.

    Raises:
        ChangeSetError: If a change is malformed or targets something missing
    """
    result: Payload = copy.deepcopy(dict(payload))
    result.setdefault("tables", [])
    result.setdefault("relationships", [])
    for change in changes:
        reducer = _REDUCERS.get(type(change))
        if reducer is None:
            raise ChangeSetError(f"Unknown change type: {type(change).__name__}")
        try:
            reducer(result, change)
        except (TypeError, AttributeError, KeyError, ValueError) as exc:
            raise ChangeSetError(
                f"{type(change).__name__} could not be applied to the schema: {exc}"
            ) from exc
    return result


def apply_changes(schema: EntitySchema, changes: Sequence[SchemaChange]) -> EntitySchema:
    """
    Return a new schema with ``changes`` applied; ``schema`` is left untouched.

    Raises:
        ChangeSetError: If a change targets a missing table, column or relationship
        pydantic.ValidationError: If the result no longer has a valid shape
    """
    return EntitySchema.from_payload(apply_changes_to_payload(schema.to_payload(), changes))


__all__ = [
    "AddTable",
    "ModifyTable",
    "DeleteTable",
    "AddColumn",
    "ModifyColumn",
    "DeleteColumn",
    "AddRelationship",
    "DeleteRelationship",
    "ModifyUIHints",
    "SchemaChange",
    "parse_change",
    "parse_changes",
    "apply_changes",
    "apply_changes_to_payload",
]
