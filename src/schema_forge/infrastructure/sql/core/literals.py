"""
Column default handling.

Defaults arrive from the AI collaborator as free text. They are classified
into a small closed set (SQL keyword/function, boolean, number, string) and
re-rendered from that classification, so the text that reaches DDL is always
either a canonical keyword, a validated number, or a quoted literal.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Tuple

from .identifier import quote_literal

# Canonical rendering for the SQL expressions a default may use.
SQL_DEFAULT_EXPRESSIONS = {
    "now()": "NOW()",
    "current_timestamp": "CURRENT_TIMESTAMP",
    "current_date": "CURRENT_DATE",
    "gen_random_uuid()": "gen_random_uuid()",
    "null": "NULL",
}

BOOLEAN_LITERALS = {"true": "TRUE", "false": "FALSE"}

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_QUOTED_RE = re.compile(r"^'(.*)'$", re.DOTALL)


class DefaultKind(Enum):
    """Classification of a column default."""

    EXPRESSION = "expression"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"


def classify_default(raw: str) -> Tuple[DefaultKind, str]:
    """
    Classify a raw default and return ``(kind, canonical_value)``.

    For strings the canonical value is the unquoted text; surrounding single
    quotes supplied by the collaborator are stripped (and ``''`` unescaped)
    so they are not quoted twice.

    Examples:
        >>> classify_default("now()")
        (<DefaultKind.EXPRESSION: 'expression'>, 'NOW()')
        >>> classify_default("'open'")
        (<DefaultKind.STRING: 'string'>, 'open')
    """
    value = raw.strip()
    lowered = value.lower()
    if lowered in SQL_DEFAULT_EXPRESSIONS:
        return DefaultKind.EXPRESSION, SQL_DEFAULT_EXPRESSIONS[lowered]
    if lowered in BOOLEAN_LITERALS:
        return DefaultKind.BOOLEAN, BOOLEAN_LITERALS[lowered]
    if _NUMERIC_RE.match(value):
        return DefaultKind.NUMBER, value
    quoted = _QUOTED_RE.match(value)
    if quoted:
        return DefaultKind.STRING, quoted.group(1).replace("''", "'")
    return DefaultKind.STRING, value


def render_default(raw: Optional[str]) -> Optional[str]:
    """Render a default as SQL text, or ``None`` when there is no default."""
    if raw is None:
        return None
    kind, value = classify_default(raw)
    if kind is DefaultKind.STRING:
        return quote_literal(value)
    return value
