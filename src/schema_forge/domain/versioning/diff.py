"""Differences between two schema snapshots."""

from __future__ import annotations

from typing import List

from schema_forge.infrastructure.schema.core import EntitySchema, TableDefinition

from .models import TableChange, VersionDiff


def _table_change(old: TableDefinition, new: TableDefinition) -> TableChange:
    old_columns = {c.name: c for c in old.columns}
    new_columns = {c.name: c for c in new.columns}
    return TableChange(
        table=new.name,
        added_columns=[name for name in new_columns if name not in old_columns],
        removed_columns=[name for name in old_columns if name not in new_columns],
        changed_columns=[
            name
            for name, column in new_columns.items()
            if name in old_columns and old_columns[name] != column
        ],
    )


def compare_snapshots(old: EntitySchema, new: EntitySchema) -> VersionDiff:
    """
    Diff two snapshots by table name, with column detail for shared tables.

    Columns are matched by name only: a renamed column is reported as one
    removed and one added column.
    """
    old_tables = {t.name: t for t in old.tables}
    new_tables = {t.name: t for t in new.tables}

    modified: List[TableChange] = []
    for name, table in new_tables.items():
        if name not in old_tables:
            continue
        change = _table_change(old_tables[name], table)
        if change.added_columns or change.removed_columns or change.changed_columns:
            modified.append(change)

    return VersionDiff(
        added=[name for name in new_tables if name not in old_tables],
        removed=[name for name in old_tables if name not in new_tables],
        modified=modified,
    )


__all__ = ["compare_snapshots"]
