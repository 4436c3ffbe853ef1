"""Unit tests for the candidate schema validator."""

from __future__ import annotations

import pytest

from schema_forge.exceptions import SchemaValidationError
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.validation import (
    SchemaLimits,
    ValidationRule,
    ensure_valid,
    validate,
)


def _errors_for(result, rule):
    return [e for e in result.errors if e.rule is rule]


def _column(payload, table, column):
    tables = {t["name"]: t for t in payload["tables"]}
    return next(c for c in tables[table]["columns"] if c["name"] == column)


class TestValidSchemaPasses:
    """A well-formed schema passes every rule group."""

    def test_crm_payload_passes(self, crm_payload) -> None:
        result = validate(crm_payload)

        assert result.passed is True
        assert result.errors == []
        assert isinstance(result.schema, EntitySchema)
        assert result.schema.table_names() == ["company", "deal"]

    def test_entity_schema_input_is_not_reparsed(self, crm_schema) -> None:
        result = validate(crm_schema)

        assert result.passed is True
        assert result.schema is crm_schema

    def test_ensure_valid_returns_parsed_schema(self, crm_payload) -> None:
        schema = ensure_valid(crm_payload)
        assert schema.get_table("deal").get_column("company_id").references.table == "company"


class TestShapeRule:
    """Malformed payloads fail with shape errors and no parsed schema."""

    def test_unknown_column_type_reports_location(self, crm_payload) -> None:
        crm_payload["tables"][0]["columns"][2]["type"] = "MONEY"

        result = validate(crm_payload)

        assert result.passed is False
        assert result.schema is None
        assert result.rules_failed() == ["shape"]
        assert result.errors[0].location == "tables[0].columns[2].type"

    def test_non_mapping_input_is_rejected(self) -> None:
        result = validate(["not", "a", "schema"])

        assert result.passed is False
        assert result.errors[0].rule is ValidationRule.SHAPE
        assert result.errors[0].location == "schema"
        assert "list" in result.errors[0].message


class TestStructureRule:
    """Version format, table and column counts, reference depth."""

    def test_version_must_be_semver(self, crm_payload) -> None:
        crm_payload["version"] = "1.0"

        errors = _errors_for(validate(crm_payload), ValidationRule.STRUCTURE)

        assert len(errors) == 1
        assert errors[0].location == "version"
        assert "semver" in errors[0].message

    def test_schema_needs_at_least_one_table(self) -> None:
        result = validate({"version": "1.0.0", "tables": []})

        assert result.passed is False
        assert "at least one table" in result.errors[0].message

    def test_table_count_limit(self, crm_payload) -> None:
        result = validate(crm_payload, SchemaLimits(max_tables=1))

        errors = _errors_for(result, ValidationRule.STRUCTURE)
        assert len(errors) == 1
        assert "more than 1 tables (got 2)" in errors[0].message

    def test_column_count_limit(self, crm_payload) -> None:
        result = validate(crm_payload, SchemaLimits(max_columns_per_table=7))

        errors = _errors_for(result, ValidationRule.STRUCTURE)
        assert [e.location for e in errors] == ["deal"]
        assert "got 8" in errors[0].message

    def test_reference_chain_deeper_than_limit(self, make_table) -> None:
        tables = []
        for i in range(1, 6):
            columns = []
            if i < 5:
                columns.append(
                    {"name": "next_id", "type": "UUID", "references": {"table": f"level{i + 1}"}}
                )
            tables.append(make_table(f"level{i}", *columns))

        result = validate({"version": "1.0.0", "tables": tables})

        errors = _errors_for(result, ValidationRule.STRUCTURE)
        assert [e.location for e in errors] == ["level1"]
        assert "depth 4" in errors[0].message

    def test_chain_at_limit_passes(self, make_table) -> None:
        tables = []
        for i in range(1, 5):
            columns = []
            if i < 4:
                columns.append(
                    {"name": "next_id", "type": "UUID", "references": {"table": f"level{i + 1}"}}
                )
            tables.append(make_table(f"level{i}", *columns))

        assert validate({"version": "1.0.0", "tables": tables}).passed is True


class TestNamingRule:
    """Identifier format, length and uniqueness."""

    def test_uppercase_table_name(self, crm_payload) -> None:
        crm_payload["tables"][0]["name"] = "Company"
        crm_payload["tables"][1]["columns"][5]["references"]["table"] = "Company"
        crm_payload["relationships"][0]["to_table"] = "Company"

        errors = _errors_for(validate(crm_payload), ValidationRule.NAMING)

        assert len(errors) == 1
        assert "snake_case" in errors[0].message

    def test_identifier_longer_than_limit(self, crm_payload) -> None:
        _column(crm_payload, "company", "website")["name"] = "w" * 64

        errors = _errors_for(validate(crm_payload), ValidationRule.NAMING)

        assert len(errors) == 1
        assert "exceeds 63 characters" in errors[0].message

    def test_duplicate_columns_and_tables(self, crm_payload) -> None:
        crm_payload["tables"][0]["columns"].append({"name": "website", "type": "TEXT"})
        crm_payload["tables"].append(dict(crm_payload["tables"][0]))

        messages = [e.message for e in _errors_for(validate(crm_payload), ValidationRule.NAMING)]

        assert "Duplicate table name 'company'" in messages
        assert "Duplicate column 'website' in table 'company'" in messages

    def test_duplicate_index_names_across_tables(self, crm_payload) -> None:
        crm_payload["tables"][0]["indexes"] = [{"name": "idx_deal_stage", "columns": ["name"]}]

        errors = _errors_for(validate(crm_payload), ValidationRule.NAMING)

        assert [e.location for e in errors] == ["deal.indexes.idx_deal_stage"]


class TestReservedWordRule:
    """Tables and columns may not use PostgreSQL reserved words."""

    def test_reserved_table_name(self, make_table) -> None:
        result = validate({"version": "1.0.0", "tables": [make_table("order")]})

        assert result.rules_failed() == ["reserved_word"]
        assert "'order' is a PostgreSQL reserved word" in result.errors[0].message

    def test_reserved_column_name(self, crm_payload) -> None:
        _column(crm_payload, "deal", "stage")["name"] = "select"
        crm_payload["tables"][1]["indexes"] = []

        errors = _errors_for(validate(crm_payload), ValidationRule.RESERVED_WORD)

        assert [e.location for e in errors] == ["deal.select"]


class TestAuditColumnRule:
    """Every table carries id, user_id, created_at and updated_at."""

    def test_missing_user_id(self, crm_payload) -> None:
        deal = crm_payload["tables"][1]
        deal["columns"] = [c for c in deal["columns"] if c["name"] != "user_id"]

        errors = _errors_for(validate(crm_payload), ValidationRule.AUDIT_COLUMNS)

        assert len(errors) == 1
        assert errors[0].location == "deal.user_id"
        assert errors[0].message == "deal missing 'user_id' audit column"

    def test_nullable_user_id(self, crm_payload) -> None:
        _column(crm_payload, "company", "user_id")["nullable"] = True

        errors = _errors_for(validate(crm_payload), ValidationRule.AUDIT_COLUMNS)

        assert [e.message for e in errors] == ["company.user_id must be NOT NULL"]

    def test_id_must_be_uuid_primary_key(self, crm_payload) -> None:
        id_column = _column(crm_payload, "company", "id")
        id_column["primaryKey"] = False
        id_column["type"] = "INTEGER"
        id_column.pop("default")

        messages = [e.message for e in _errors_for(validate(crm_payload), ValidationRule.AUDIT_COLUMNS)]

        assert "company.id must be the primary key" in messages
        assert "company.id must be UUID, got INTEGER" in messages

    def test_only_id_may_be_primary_key(self, crm_payload) -> None:
        _column(crm_payload, "company", "name")["primaryKey"] = True

        errors = _errors_for(validate(crm_payload), ValidationRule.AUDIT_COLUMNS)

        assert len(errors) == 1
        assert "cannot be a primary key" in errors[0].message

    def test_timestamps_must_be_timestamps(self, crm_payload) -> None:
        created = _column(crm_payload, "deal", "created_at")
        created["type"] = "DATE"

        errors = _errors_for(validate(crm_payload), ValidationRule.AUDIT_COLUMNS)

        assert [e.location for e in errors] == ["deal.created_at"]


class TestReferentialIntegrityRule:
    """Foreign keys, indexes and relationships point at existing things."""

    def test_reference_to_missing_table(self, crm_payload) -> None:
        _column(crm_payload, "deal", "company_id")["references"]["table"] = "customer"

        errors = _errors_for(validate(crm_payload), ValidationRule.REFERENTIAL_INTEGRITY)

        assert errors[0].location == "deal.company_id"
        assert "references non-existent table 'customer'" in errors[0].message

    def test_reference_to_missing_column(self, crm_payload) -> None:
        _column(crm_payload, "deal", "company_id")["references"]["column"] = "uuid"

        errors = _errors_for(validate(crm_payload), ValidationRule.REFERENTIAL_INTEGRITY)

        assert len(errors) == 1
        assert "non-existent column 'company.uuid'" in errors[0].message

    def test_index_on_missing_column(self, crm_payload) -> None:
        crm_payload["tables"][1]["indexes"][0]["columns"] = ["status"]

        errors = _errors_for(validate(crm_payload), ValidationRule.REFERENTIAL_INTEGRITY)

        assert [e.location for e in errors] == ["deal.indexes.idx_deal_stage"]

    def test_relationship_to_missing_table(self, crm_payload) -> None:
        crm_payload["relationships"][0]["to_table"] = "account"

        errors = _errors_for(validate(crm_payload), ValidationRule.REFERENTIAL_INTEGRITY)

        assert [e.location for e in errors] == ["relationships[0]"]
        assert "to_table 'account' does not exist" in errors[0].message


class TestCircularDependencyRule:
    """Any cycle in the foreign-key graph is rejected."""

    def test_two_table_cycle(self, crm_payload) -> None:
        crm_payload["tables"][0]["columns"].append(
            {"name": "primary_deal_id", "type": "UUID", "references": {"table": "deal"}}
        )

        result = validate(crm_payload)

        errors = _errors_for(result, ValidationRule.CIRCULAR_DEPENDENCY)
        assert len(errors) == 1
        assert errors[0].message == "Circular dependency detected: company -> deal -> company"
        assert _errors_for(result, ValidationRule.STRUCTURE) == []

    def test_self_reference(self, make_table) -> None:
        employee = make_table(
            "employee",
            {"name": "manager_id", "type": "UUID", "references": {"table": "employee"}},
        )

        result = validate({"version": "1.0.0", "tables": [employee]})

        assert result.rules_failed() == ["circular_dependency"]
        assert "employee -> employee" in result.errors[0].message


class TestDefaultValueRule:
    """Defaults must be compatible with the column type."""

    @pytest.mark.parametrize(
        "column, expected",
        [
            ({"name": "active", "type": "BOOLEAN", "default": "'yes'"}, "true/false"),
            ({"name": "score", "type": "INTEGER", "default": "high"}, "numeric default"),
            ({"name": "code", "type": "TEXT", "default": "gen_random_uuid()"}, "UUID column"),
            ({"name": "label", "type": "TEXT", "default": "now()"}, "date or timestamp"),
            ({"name": "note", "type": "TEXT", "nullable": False, "default": "NULL"}, "NOT NULL"),
            ({"name": "flag_text", "type": "TEXT", "default": "true"}, "Boolean default"),
            ({"name": "blurb", "type": "TEXT", "default": "x" * 256}, "255 characters"),
        ],
    )
    def test_incompatible_defaults(self, crm_payload, column, expected) -> None:
        crm_payload["tables"][0]["columns"].append(column)

        errors = _errors_for(validate(crm_payload), ValidationRule.DEFAULT_VALUE)

        assert len(errors) == 1
        assert errors[0].location == f"company.{column['name']}"
        assert expected in errors[0].message

    @pytest.mark.parametrize(
        "column",
        [
            {"name": "active", "type": "BOOLEAN", "default": True},
            {"name": "score", "type": "INTEGER", "default": 10},
            {"name": "ratio", "type": "NUMERIC", "default": "-1.5"},
            {"name": "signed_on", "type": "DATE", "default": "CURRENT_DATE"},
            {"name": "note", "type": "TEXT", "default": "NULL"},
            {"name": "status", "type": "TEXT", "default": "'it''s open'"},
        ],
    )
    def test_compatible_defaults(self, crm_payload, column) -> None:
        crm_payload["tables"][0]["columns"].append(column)

        assert validate(crm_payload).passed is True


class TestErrorAccumulation:
    """All rule groups run; errors are collected, never short-circuited."""

    def test_errors_from_several_rules(self, crm_payload) -> None:
        crm_payload["version"] = "v1"
        crm_payload["tables"][0]["name"] = "user"
        _column(crm_payload, "deal", "amount")["default"] = "lots"

        result = validate(crm_payload)

        assert result.passed is False
        assert set(result.rules_failed()) >= {
            "structure",
            "reserved_word",
            "referential_integrity",
            "default_value",
        }

    def test_ensure_valid_raises_with_details(self, crm_payload) -> None:
        crm_payload["version"] = "latest"

        with pytest.raises(SchemaValidationError) as exc_info:
            ensure_valid(crm_payload)

        assert exc_info.value.errors[0].rule is ValidationRule.STRUCTURE
        assert exc_info.value.to_dict()["error_type"] == "ValidationError"
