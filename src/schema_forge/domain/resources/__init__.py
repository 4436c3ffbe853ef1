"""Runtime resource registry and schema-to-resource conversion."""

from .converter import convert_schema_to_resources, convert_table_to_resource
from .models import (
    CompiledEntity,
    FieldType,
    NavigationEntry,
    RelationshipKind,
    ResourceField,
    ResourceRegistryEntry,
    ResourceRelationship,
)
from .registrar import (
    RegistrationResult,
    import_registry,
    publish_schema,
    register_resources_from_schema,
    sync_resources_from_schema,
)
from .registry import ResourceRegistry, create_registry

__all__ = [
    "FieldType",
    "RelationshipKind",
    "ResourceField",
    "ResourceRelationship",
    "CompiledEntity",
    "ResourceRegistryEntry",
    "NavigationEntry",
    "convert_table_to_resource",
    "convert_schema_to_resources",
    "ResourceRegistry",
    "create_registry",
    "RegistrationResult",
    "register_resources_from_schema",
    "publish_schema",
    "sync_resources_from_schema",
    "import_registry",
]
