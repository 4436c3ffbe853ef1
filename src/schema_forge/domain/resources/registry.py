"""
Runtime resource registry.

Single source of truth for which entities exist and what fields they carry.
Writes are serialized by an ``RLock``; every write republishes an immutable
snapshot (``MappingProxyType``) so that reads never take the lock.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from schema_forge.infrastructure.schema.core import AUDIT_COLUMNS
from schema_forge.utils.logging import get_logger

from .converter import humanize
from .models import (
    CompiledEntity,
    FieldType,
    NavigationEntry,
    ResourceField,
    ResourceRegistryEntry,
)

logger = get_logger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class ResourceRegistry:
    """
    Registry of compiled entities keyed by resource name.

    Create one per application (or per test) with ``create_registry()``;
    there is no module-level instance.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: Dict[str, ResourceRegistryEntry] = {}
        self._snapshot: Mapping[str, ResourceRegistryEntry] = _EMPTY
        self._by_plural: Mapping[str, str] = _EMPTY

    def _publish(self) -> None:
        """Rebuild the read snapshot and plural index; caller holds the lock."""
        self._snapshot = MappingProxyType(dict(self._entries))
        self._by_plural = MappingProxyType(
            {entry.resource.plural_name: name for name, entry in self._entries.items()}
        )

    # Writes

    def register(self, entity: CompiledEntity) -> None:
        """Add or replace a resource; replacing keeps ``created_at`` and logs a warning."""
        now = datetime.now(timezone.utc)
        with self._lock:
            previous = self._entries.get(entity.name)
            if previous is not None:
                logger.warning("registry.resource_overridden", resource=entity.name)
            self._entries[entity.name] = ResourceRegistryEntry(
                resource=entity,
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            self._publish()
        logger.debug(
            "registry.resource_registered",
            resource=entity.name,
            plural=entity.plural_name,
            fields=len(entity.fields),
        )

    def unregister(self, name: str) -> bool:
        with self._lock:
            if name not in self._entries:
                return False
            del self._entries[name]
            self._publish()
        logger.debug("registry.resource_unregistered", resource=name)
        return True

    def replace(
        self,
        entities: Iterable[CompiledEntity],
        remove: Iterable[str] = (),
        clear: bool = False,
    ) -> None:
        """
        Upsert ``entities`` and drop ``remove`` (or everything else, with ``clear``) in one step.

        Readers see either the old snapshot or the new one, never a partial
        registry. Entities already present keep their ``created_at``.
        """
        now = datetime.now(timezone.utc)
        upserts = list(entities)
        removals = list(remove)
        with self._lock:
            previous = self._entries
            if clear:
                self._entries = {}
            else:
                self._entries = dict(previous)
                for name in removals:
                    self._entries.pop(name, None)
            for entity in upserts:
                existing = previous.get(entity.name)
                self._entries[entity.name] = ResourceRegistryEntry(
                    resource=entity,
                    created_at=existing.created_at if existing else now,
                    updated_at=now,
                )
            self._publish()
        logger.debug(
            "registry.resources_replaced",
            upserted=[entity.name for entity in upserts],
            removed=removals,
            cleared=clear,
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._publish()
        logger.info("registry.cleared")

    # Reads (lock-free against the current snapshot)

    def get(self, name: str) -> Optional[CompiledEntity]:
        entry = self._snapshot.get(name)
        return entry.resource if entry else None

    def get_entry(self, name: str) -> Optional[ResourceRegistryEntry]:
        return self._snapshot.get(name)

    def get_all(self) -> List[CompiledEntity]:
        return [entry.resource for entry in self._snapshot.values()]

    def get_by_plural_name(self, plural_name: str) -> Optional[CompiledEntity]:
        name = self._by_plural.get(plural_name)
        return self.get(name) if name else None

    def has(self, name: str) -> bool:
        return name in self._snapshot

    def size(self) -> int:
        return len(self._snapshot)

    def names(self) -> List[str]:
        return list(self._snapshot)

    def to_json(self) -> Dict[str, Dict[str, Any]]:
        """``{resource_name: CompiledEntity as JSON-safe dict}``."""
        return {
            name: entry.resource.model_dump(mode="json")
            for name, entry in self._snapshot.items()
        }

    def get_stats(self) -> Dict[str, Any]:
        resources = self.get_all()
        return {
            "total_resources": len(resources),
            "total_fields": sum(len(r.fields) for r in resources),
            "resources": [
                {"name": r.name, "fields": len(r.fields), "plural": r.plural_name}
                for r in resources
            ],
        }

    # Derived views

    def _business_fields(self, name: str) -> List[ResourceField]:
        resource = self.get(name)
        if resource is None:
            return []
        return [f for f in resource.fields if f.name not in AUDIT_COLUMNS]

    def get_form_fields(self, name: str) -> List[ResourceField]:
        """Editable fields: everything except the audit columns."""
        return self._business_fields(name)

    def get_list_fields(self, name: str) -> List[ResourceField]:
        """Columns shown in list views: everything except the audit columns."""
        return self._business_fields(name)

    def get_relationship_fields(self, name: str) -> List[ResourceField]:
        """One synthetic lookup field per relationship of the resource."""
        resource = self.get(name)
        if resource is None:
            return []
        return [
            ResourceField(
                name=rel.foreign_key_column,
                type=FieldType.TEXT,
                required=False,
                display_name=humanize(rel.name),
                related_resource=rel.related_resource,
            )
            for rel in resource.relationships
        ]

    def get_navigation_entries(self) -> List[NavigationEntry]:
        return [
            NavigationEntry(
                name=r.plural_name,
                list=f"/{r.plural_name}",
                create=f"/{r.plural_name}/create",
                edit=f"/{r.plural_name}/:id/edit",
                show=f"/{r.plural_name}/:id",
                label=r.plural_label,
                icon=r.icon,
                description=r.description,
            )
            for r in self.get_all()
        ]


def create_registry() -> ResourceRegistry:
    """Return a new, empty registry."""
    return ResourceRegistry()


__all__ = ["ResourceRegistry", "create_registry"]
