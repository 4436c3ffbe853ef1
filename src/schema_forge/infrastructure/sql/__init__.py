"""
SQL utilities for SchemaForge.

Only identifier/literal helpers live here; complete statements are produced
exclusively by ``schema_forge.infrastructure.schema.ddl_generator``.
"""

from .core import (
    classify_default,
    qualify_table,
    quote_identifier,
    quote_literal,
    render_default,
)

__all__ = [
    "quote_identifier",
    "qualify_table",
    "quote_literal",
    "classify_default",
    "render_default",
]
