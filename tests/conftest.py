"""Shared fixtures: a small CRM schema and in-memory bookkeeping databases."""

from __future__ import annotations

import copy
import os
from typing import Any, Callable, Dict, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

# Settings() must not pick up a developer's .env or production settings.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "dev")

from schema_forge.config import get_settings  # noqa: E402
from schema_forge.infrastructure.schema.core import EntitySchema  # noqa: E402
from schema_forge.io.schema.tables import create_all  # noqa: E402


def audit_columns() -> list:
    return [
        {"name": "id", "type": "UUID", "nullable": False, "primaryKey": True, "default": "gen_random_uuid()"},
        {"name": "user_id", "type": "UUID", "nullable": False},
        {"name": "created_at", "type": "TIMESTAMPTZ", "nullable": False, "default": "now()"},
        {"name": "updated_at", "type": "TIMESTAMPTZ", "nullable": False, "default": "now()"},
    ]


def table_payload(name: str, *business_columns: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    """A table with the audit columns around ``business_columns``."""
    columns = audit_columns()
    return {
        "name": name,
        "columns": columns[:2] + list(business_columns) + columns[2:],
        **extra,
    }


CRM_PAYLOAD: Dict[str, Any] = {
    "version": "1.0.0",
    "tables": [
        table_payload(
            "company",
            {"name": "name", "type": "TEXT", "nullable": False},
            {"name": "website", "type": "TEXT"},
            ui_hints={"icon": "Building", "label": "Company", "columns": {"website": {"type": "url"}}},
        ),
        table_payload(
            "deal",
            {"name": "title", "type": "TEXT", "nullable": False},
            {"name": "amount", "type": "NUMERIC", "default": "0"},
            {"name": "stage", "type": "TEXT", "default": "'open'"},
            {
                "name": "company_id",
                "type": "UUID",
                "nullable": False,
                "references": {"table": "company", "column": "id", "onDelete": "CASCADE"},
            },
            indexes=[{"name": "idx_deal_stage", "columns": ["stage"]}],
        ),
    ],
    "relationships": [
        {
            "from_table": "deal",
            "from_column": "company_id",
            "to_table": "company",
            "to_column": "id",
            "type": "many-to-one",
        }
    ],
}


@pytest.fixture
def crm_payload() -> Dict[str, Any]:
    """A fresh, mutable copy of the two-table CRM schema payload."""
    return copy.deepcopy(CRM_PAYLOAD)


@pytest.fixture
def crm_schema(crm_payload: Dict[str, Any]) -> EntitySchema:
    return EntitySchema.from_payload(crm_payload)


@pytest.fixture
def make_table() -> Callable[..., Dict[str, Any]]:
    """Builder for table payloads carrying the audit columns."""
    return table_payload


@pytest.fixture
def contact_table() -> Dict[str, Any]:
    return table_payload(
        "contact",
        {"name": "email", "type": "TEXT", "nullable": False},
        {
            "name": "company_id",
            "type": "UUID",
            "references": {"table": "company", "onDelete": "SET NULL"},
        },
    )


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the bookkeeping tables created."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clean_settings() -> Iterator[None]:
    """Clear the cached settings before and after a test that changes the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
