"""Publish schemas into a resource registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from schema_forge.infrastructure.schema.core import EntitySchema, TableDefinition
from schema_forge.utils.logging import get_logger

from .converter import convert_table_to_resource
from .models import CompiledEntity
from .registry import ResourceRegistry

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    success: bool = True
    resources_registered: List[str] = field(default_factory=list)
    resources_failed: List[str] = field(default_factory=list)
    total_fields: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "resources_registered": list(self.resources_registered),
            "resources_failed": list(self.resources_failed),
            "total_fields": self.total_fields,
            "errors": list(self.errors),
        }


def _convert_tables(tables: Iterable[TableDefinition], result: RegistrationResult) -> List[CompiledEntity]:
    """Convert each table on its own; tables that fail are recorded on ``result``."""
    entities: List[CompiledEntity] = []
    for table in tables:
        try:
            entity = convert_table_to_resource(table)
        except ValidationError as exc:
            result.resources_failed.append(table.name)
            result.errors.append(f"Failed to register {table.name}: {exc.error_count()} invalid field(s)")
            logger.warning("registry.resource_conversion_failed", resource=table.name, errors=exc.error_count())
            continue
        entities.append(entity)
        result.resources_registered.append(entity.name)
        result.total_fields += len(entity.fields)
    result.success = not result.resources_failed
    return entities


def register_resources_from_schema(
    registry: ResourceRegistry, schema: EntitySchema, clear_existing: bool = False
) -> RegistrationResult:
    """Convert every table and register it, optionally replacing the whole registry."""
    result = RegistrationResult()
    registry.replace(_convert_tables(schema.tables, result), clear=clear_existing)
    logger.info(
        "registry.schema_registered",
        resources=result.resources_registered,
        failed=result.resources_failed,
        total_fields=result.total_fields,
        cleared=clear_existing,
    )
    return result


def publish_schema(
    registry: ResourceRegistry, schema: EntitySchema, previous: Optional[EntitySchema] = None
) -> RegistrationResult:
    """
    Make the registry reflect ``schema`` without touching other projects' resources.

    Tables present in ``previous`` but gone from ``schema`` are unregistered;
    every table of ``schema`` is upserted. Both happen in one registry swap.
    A table that fails to convert keeps whatever entry it had before.
    """
    result = RegistrationResult()
    entities = _convert_tables(schema.tables, result)
    removed = sorted(set(previous.table_names()) - set(schema.table_names())) if previous else []
    registry.replace(entities, remove=removed)
    logger.info(
        "registry.schema_published",
        resources=result.resources_registered,
        removed=removed,
        failed=result.resources_failed,
    )
    return result


def sync_resources_from_schema(registry: ResourceRegistry, schema: EntitySchema) -> RegistrationResult:
    """Register only the tables the registry does not know yet."""
    result = RegistrationResult()
    pending = [table for table in schema.tables if not registry.has(table.name)]
    registry.replace(_convert_tables(pending, result))
    logger.info("registry.schema_synced", added=result.resources_registered)
    return result


def import_registry(registry: ResourceRegistry, payload: Mapping[str, Any]) -> RegistrationResult:
    """
    Replace the registry contents with entities from ``ResourceRegistry.to_json()`` output.

    Entries that do not parse are skipped and reported in ``resources_failed``.
    """
    result = RegistrationResult()
    entities: List[CompiledEntity] = []
    for name, data in payload.items():
        try:
            entity = CompiledEntity.model_validate(data)
        except ValidationError as exc:
            result.resources_failed.append(name)
            result.errors.append(f"Failed to import {name}: {exc.error_count()} invalid field(s)")
            continue
        entities.append(entity)
        result.resources_registered.append(entity.name)
        result.total_fields += len(entity.fields)
    result.success = not result.resources_failed
    registry.replace(entities, clear=True)
    logger.info(
        "registry.imported",
        imported=result.resources_registered,
        failed=result.resources_failed,
    )
    return result


__all__ = [
    "RegistrationResult",
    "register_resources_from_schema",
    "publish_schema",
    "sync_resources_from_schema",
    "import_registry",
]
