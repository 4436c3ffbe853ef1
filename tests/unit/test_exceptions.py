"""Tests for structured error payloads."""

from __future__ import annotations

from datetime import datetime, timezone

from schema_forge.exceptions import ConcurrencyError, ProvisioningError, VersionNotFoundError


def test_provisioning_error_names_table() -> None:
    error = ProvisioningError("relation already exists", table="deal", original_error=RuntimeError("dup"))

    assert str(error) == "Failed to provision 'deal': relation already exists"
    assert error.to_dict()["original_error_type"] == "RuntimeError"


def test_concurrency_error_serializes_expiry() -> None:
    expires = datetime(2026, 1, 1, tzinfo=timezone.utc)
    data = ConcurrencyError("locked", project_id="p1", held_by="u2", expires_at=expires).to_dict()

    assert data["error_type"] == "ConcurrencyError"
    assert data["expires_at"] == expires.isoformat()


def test_version_not_found_is_a_key_error() -> None:
    error = VersionNotFoundError("v-1")

    assert isinstance(error, KeyError)
    assert str(error) == "Schema version 'v-1' not found"
