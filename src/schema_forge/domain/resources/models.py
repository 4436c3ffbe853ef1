"""Runtime resource records consumed by generic CRUD views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    TEXTAREA = "textarea"
    SELECT = "select"
    CURRENCY = "currency"
    STATUS = "status"


class RelationshipKind(str, Enum):
    BELONGS_TO = "belongsTo"
    HAS_MANY = "hasMany"
    HAS_ONE = "hasOne"
    MANY_TO_MANY = "manyToMany"


class ResourceField(BaseModel):
    """One renderable field of a resource."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    display_name: str
    filterable: bool = True
    sortable: bool = True
    related_resource: Optional[str] = None


class ResourceRelationship(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: RelationshipKind = RelationshipKind.BELONGS_TO
    related_resource: str
    foreign_key_column: str


class CompiledEntity(BaseModel):
    """A compiled table as the registry sees it.

    ``fields`` covers every column including the audit columns; the
    registry's form and list views filter those out.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    plural_name: str
    singular_label: str
    plural_label: str
    icon: str = "Database"
    description: str = ""
    color: str = "blue"
    fields: List[ResourceField] = Field(default_factory=list)
    relationships: List[ResourceRelationship] = Field(default_factory=list)
    route: str


@dataclass(frozen=True)
class ResourceRegistryEntry:
    resource: CompiledEntity
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class NavigationEntry:
    """Routes a generic CRUD shell needs for one resource."""

    name: str
    list: str
    create: str
    edit: str
    show: str
    label: str
    icon: str
    description: str


__all__ = [
    "FieldType",
    "RelationshipKind",
    "ResourceField",
    "ResourceRelationship",
    "CompiledEntity",
    "ResourceRegistryEntry",
    "NavigationEntry",
]
