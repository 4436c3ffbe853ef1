"""Core SQL building utilities: identifier quoting and literal rendering."""

from .identifier import derived_identifier, qualify_table, quote_identifier, quote_literal
from .literals import DefaultKind, classify_default, render_default

__all__ = [
    "derived_identifier",
    "quote_identifier",
    "qualify_table",
    "quote_literal",
    "DefaultKind",
    "classify_default",
    "render_default",
]
