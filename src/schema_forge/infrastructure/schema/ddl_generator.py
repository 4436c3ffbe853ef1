"""DDL SQL generation for validated entity schemas.

This module is the only place in the project that produces data-definition
statements. It accepts structured ``EntitySchema`` objects only, never SQL
text, and every identifier and literal it emits goes through the quoting
helpers in ``schema_forge.infrastructure.sql.core``.

Output is deterministic: the same schema and options always produce
byte-identical text, so ``CompiledDdl.fingerprint`` identifies a compilation.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from schema_forge.config import Settings, get_settings
from schema_forge.exceptions import CompilationError
from schema_forge.infrastructure.sql.core.identifier import derived_identifier, quote_identifier
from schema_forge.infrastructure.sql.core.literals import render_default
from schema_forge.infrastructure.validation.schema_rules import validate
from schema_forge.utils.logging import get_logger

from .core import ColumnDefinition, EntitySchema, TableDefinition

logger = get_logger(__name__)

MANDATORY_INDEX_COLUMNS: Tuple[str, ...] = ("user_id", "created_at")


@dataclass(frozen=True)
class CompilerOptions:
    """Deployment-specific names used in the row-level isolation output."""

    principal_expression: str = "auth.uid()"
    policy_role: str = "authenticated"
    updated_at_function: str = "update_updated_at_column"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CompilerOptions":
        settings = settings or get_settings()
        return cls(
            principal_expression=settings.rls_principal_expression,
            policy_role=settings.rls_policy_role,
            updated_at_function=settings.updated_at_function,
        )


@dataclass(frozen=True)
class TableDdl:
    """One table's statements, grouped in execution order."""

    name: str
    create_table: str
    foreign_keys: Tuple[str, ...] = ()
    indexes: Tuple[str, ...] = ()
    row_security: Tuple[str, ...] = ()
    triggers: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    def statements(self) -> Tuple[str, ...]:
        return (
            (self.create_table,)
            + self.foreign_keys
            + self.indexes
            + self.row_security
            + self.triggers
        )


@dataclass(frozen=True)
class CompiledDdl:
    """Result of compiling one schema.

    Attributes:
        text: Complete DDL wrapped in a single ``BEGIN``/``COMMIT`` block
        statements: Every statement in ``text`` order, without the transaction wrapper
        tables: Table names in schema order
        fingerprint: sha256 hex digest of ``text``
        shared_statements: Statements every table depends on (trigger function)
        table_ddl: Per-table statement groups for independent execution
        options: Options the schema was compiled with
    """

    text: str
    statements: Tuple[str, ...]
    tables: Tuple[str, ...]
    fingerprint: str
    shared_statements: Tuple[str, ...] = ()
    table_ddl: Tuple[TableDdl, ...] = ()
    options: CompilerOptions = field(default_factory=CompilerOptions)

    def for_table(self, name: str) -> Tuple[str, ...]:
        """Statements for one table in the fixed 1-5 group order."""
        for ddl in self.table_ddl:
            if ddl.name == name:
                return ddl.statements()
        raise KeyError(f"Table '{name}' is not part of this compilation")

    def dependency_order(self) -> Tuple[str, ...]:
        """Table names with every referenced table before the tables that point at it.

        Ties keep schema order. Validated schemas have no foreign-key cycles;
        should one appear, the remaining tables follow in schema order.
        """
        known = set(self.tables)
        pending = {
            t.name: {ref for ref in t.references if ref in known and ref != t.name}
            for t in self.table_ddl
        }
        ordered: List[str] = []
        while pending:
            ready = next((name for name in pending if not pending[name] - set(ordered)), None)
            if ready is None:
                ordered.extend(pending)
                break
            ordered.append(ready)
            del pending[ready]
        return tuple(ordered)


def _column_sql(col: ColumnDefinition) -> str:
    parts = [quote_identifier(col.name), col.type.value]
    if col.primary_key:
        parts.append("PRIMARY KEY")
    elif not col.nullable:
        parts.append("NOT NULL")
    default = render_default(col.default)
    if default is not None:
        parts.append(f"DEFAULT {default}")
    if col.unique and not col.primary_key:
        parts.append("UNIQUE")
    return " ".join(parts)


def generate_create_table_ddl(table: TableDefinition) -> str:
    """Generate the ``CREATE TABLE IF NOT EXISTS`` statement."""
    lines: List[str] = [f"CREATE TABLE IF NOT EXISTS {quote_identifier(table.name)} ("]
    lines.append(",\n".join(f"  {_column_sql(col)}" for col in table.columns))
    lines.append(");")
    return "\n".join(lines)


def generate_foreign_keys_ddl(table: TableDefinition) -> Tuple[str, ...]:
    """Generate drop-then-add statements for every foreign key.

    Foreign keys are kept out of ``CREATE TABLE`` so that tables can reference
    tables created later in the same schema.
    """
    quoted_table = quote_identifier(table.name)
    sqls: List[str] = []
    for col in table.foreign_keys():
        ref = col.references
        constraint = quote_identifier(derived_identifier("fk", table.name, col.name))
        sqls.append(f"ALTER TABLE {quoted_table} DROP CONSTRAINT IF EXISTS {constraint};")
        sqls.append(
            f"ALTER TABLE {quoted_table} ADD CONSTRAINT {constraint} "
            f"FOREIGN KEY ({quote_identifier(col.name)}) "
            f"REFERENCES {quote_identifier(ref.table)} ({quote_identifier(ref.column)}) "
            f"ON DELETE {ref.on_delete.value};"
        )
    return tuple(sqls)


def generate_indexes_ddl(table: TableDefinition) -> Tuple[str, ...]:
    """Generate declared indexes plus the mandatory user_id/created_at indexes."""
    quoted_table = quote_identifier(table.name)
    sqls: List[str] = []
    names = set()
    for idx in table.indexes:
        names.add(idx.name)
        cols_str = ", ".join(quote_identifier(c) for c in idx.columns)
        unique_str = "UNIQUE " if idx.unique else ""
        sqls.append(
            f"CREATE {unique_str}INDEX IF NOT EXISTS {quote_identifier(idx.name)} "
            f"ON {quoted_table} ({cols_str});"
        )
    for column in MANDATORY_INDEX_COLUMNS:
        idx_name = derived_identifier("idx", table.name, column)
        if idx_name in names:
            continue
        sqls.append(
            f"CREATE INDEX IF NOT EXISTS {quote_identifier(idx_name)} "
            f"ON {quoted_table} ({quote_identifier(column)});"
        )
    return tuple(sqls)


def generate_row_security_ddl(table: TableDefinition, options: CompilerOptions) -> Tuple[str, ...]:
    """Enable RLS and (re)create the per-user isolation policy."""
    quoted_table = quote_identifier(table.name)
    policy = quote_identifier(derived_identifier(table.name, "user_isolation"))
    predicate = f'{quote_identifier("user_id")} = {options.principal_expression}'
    return (
        f"ALTER TABLE {quoted_table} ENABLE ROW LEVEL SECURITY;",
        f"DROP POLICY IF EXISTS {policy} ON {quoted_table};",
        "\n".join(
            [
                f"CREATE POLICY {policy} ON {quoted_table}",
                "  FOR ALL",
                f"  TO {options.policy_role}",
                f"  USING ({predicate})",
                f"  WITH CHECK ({predicate});",
            ]
        ),
    )


def generate_trigger_function_ddl(options: CompilerOptions) -> str:
    """The shared function that keeps ``updated_at`` current."""
    lines = [
        f"CREATE OR REPLACE FUNCTION {quote_identifier(options.updated_at_function)}()",
        "RETURNS TRIGGER AS $$",
        "BEGIN",
        "    NEW.updated_at = NOW();",
        "    RETURN NEW;",
        "END;",
        "$$ LANGUAGE plpgsql;",
    ]
    return "\n".join(lines)


def generate_triggers_ddl(table: TableDefinition, options: CompilerOptions) -> Tuple[str, ...]:
    """Bind the shared updated_at function to one table."""
    quoted_table = quote_identifier(table.name)
    trigger = quote_identifier(derived_identifier(table.name, "updated_at"))
    return (
        f"DROP TRIGGER IF EXISTS {trigger} ON {quoted_table};",
        "\n".join(
            [
                f"CREATE TRIGGER {trigger}",
                f"    BEFORE UPDATE ON {quoted_table}",
                "    FOR EACH ROW",
                f"    EXECUTE FUNCTION {quote_identifier(options.updated_at_function)}();",
            ]
        ),
    )


def compile_table(table: TableDefinition, options: Optional[CompilerOptions] = None) -> TableDdl:
    """Compile one table into its five statement groups."""
    options = options or CompilerOptions.from_settings()
    return TableDdl(
        name=table.name,
        create_table=generate_create_table_ddl(table),
        foreign_keys=generate_foreign_keys_ddl(table),
        indexes=generate_indexes_ddl(table),
        row_security=generate_row_security_ddl(table, options),
        triggers=generate_triggers_ddl(table, options),
        references=tuple(dict.fromkeys(col.references.table for col in table.foreign_keys())),
    )


def _assert_valid(schema: EntitySchema) -> None:
    if not isinstance(schema, EntitySchema):
        logger.critical("compiler.rejected_input", input_type=type(schema).__name__)
        raise CompilationError(
            f"Compiler accepts EntitySchema objects only, got {type(schema).__name__}"
        )
    result = validate(schema)
    if not result.passed:
        logger.critical(
            "compiler.invalid_schema",
            rules=result.rules_failed(),
            errors=[e.to_dict() for e in result.errors],
        )
        raise CompilationError(
            "Refusing to compile a schema that fails validation: "
            + "; ".join(e.message for e in result.errors[:5])
        )


def compile_schema(schema: EntitySchema, options: Optional[CompilerOptions] = None) -> CompiledDdl:
    """
    Compile a validated schema into transactional DDL.

    The atomic text emits each statement group across all tables before the
    next group (every CREATE TABLE precedes every foreign key) and wraps the
    whole thing in ``BEGIN``/``COMMIT``.

    Raises:
        CompilationError: If ``schema`` is not an ``EntitySchema`` or fails validation
    """
    _assert_valid(schema)
    options = options or CompilerOptions.from_settings()

    function_sql = generate_trigger_function_ddl(options)
    tables = tuple(compile_table(table, options) for table in schema.tables)

    stages: List[Tuple[str, List[str]]] = [
        ("Create tables", [t.create_table for t in tables]),
        ("Add foreign key constraints", [s for t in tables for s in t.foreign_keys]),
        ("Create indexes", [s for t in tables for s in t.indexes]),
        ("Enable row level security and isolation policies", [s for t in tables for s in t.row_security]),
        ("Create updated_at triggers", [s for t in tables for s in t.triggers]),
    ]

    statements: List[str] = [function_sql]
    parts: List[str] = [
        f"-- SchemaForge generated schema v{schema.version}",
        f"-- Tables: {', '.join(t.name for t in tables)}",
        "-- DO NOT MANUALLY EDIT",
        "",
        "BEGIN;",
        "",
        "-- Function to auto-update updated_at timestamp",
        function_sql,
    ]
    for title, stage_statements in stages:
        if not stage_statements:
            continue
        parts.append("")
        parts.append(f"-- {title}")
        parts.extend(stage_statements)
        statements.extend(stage_statements)
    parts.extend(["", "COMMIT;", ""])

    text = "\n".join(parts)
    compiled = CompiledDdl(
        text=text,
        statements=tuple(statements),
        tables=tuple(t.name for t in tables),
        fingerprint=hashlib.sha256(text.encode("utf-8")).hexdigest(),
        shared_statements=(function_sql,),
        table_ddl=tables,
        options=options,
    )
    logger.debug(
        "compiler.compiled",
        tables=list(compiled.tables),
        statement_count=len(compiled.statements),
        fingerprint=compiled.fingerprint[:12],
    )
    return compiled


def compile_add_column(table_name: str, column: ColumnDefinition) -> str:
    """Generate ``ALTER TABLE ... ADD COLUMN`` for schema evolution.

    Raises:
        CompilationError: If the column is NOT NULL and has no default
    """
    if not column.nullable and not column.primary_key and column.default is None:
        raise CompilationError(
            f"Cannot add non-nullable column '{column.name}' to '{table_name}' "
            "without a default value"
        )
    return (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"ADD COLUMN IF NOT EXISTS {_column_sql(column)};"
    )


def compile_drop_column(table_name: str, column_name: str) -> str:
    """Generate ``ALTER TABLE ... DROP COLUMN`` (destructive)."""
    return (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"DROP COLUMN IF EXISTS {quote_identifier(column_name)};"
    )


def compile_drop_table(table_name: str) -> str:
    """Generate ``DROP TABLE ... CASCADE`` (destructive)."""
    return f"DROP TABLE IF EXISTS {quote_identifier(table_name)} CASCADE;"


def statement_counts(ddl: CompiledDdl) -> Dict[str, int]:
    """Per-table statement counts, used in provisioning logs."""
    return {t.name: len(t.statements()) for t in ddl.table_ddl}


__all__ = [
    "MANDATORY_INDEX_COLUMNS",
    "CompilerOptions",
    "TableDdl",
    "CompiledDdl",
    "compile_schema",
    "compile_table",
    "compile_add_column",
    "compile_drop_column",
    "compile_drop_table",
    "generate_create_table_ddl",
    "generate_foreign_keys_ddl",
    "generate_indexes_ddl",
    "generate_row_security_ddl",
    "generate_trigger_function_ddl",
    "generate_triggers_ddl",
    "statement_counts",
]
