"""
SQL identifier handling utilities.

Provides functions for proper quoting and qualification of SQL identifiers
(table names, column names, constraint names) so that compiled DDL never
splices schema-supplied text into statements unescaped.
"""

import hashlib
from typing import Optional

# NAMEDATALEN - 1; longer names are silently truncated by PostgreSQL
POSTGRES_MAX_IDENTIFIER_LENGTH = 63


def quote_identifier(name: str) -> str:
    """
    Quote a PostgreSQL identifier (table, column, index or policy name).

    Args:
        name: The identifier to quote

    Returns:
        Properly quoted identifier

    Examples:
        >>> quote_identifier("company_id")
        '"company_id"'
        >>> quote_identifier('odd"name')
        '"odd""name"'
    """
    # Escape internal double quotes by doubling them
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def derived_identifier(*parts: str, max_length: int = POSTGRES_MAX_IDENTIFIER_LENGTH) -> str:
    """
    Join ``parts`` with ``_`` into a name that fits ``max_length``.

    Names that would be too long keep their leading characters and end in an
    8-character digest of the full name, so two long names that share a
    prefix still come out different.

    Examples:
        >>> derived_identifier("fk", "deal", "company_id")
        'fk_deal_company_id'
    """
    name = "_".join(parts)
    if len(name) <= max_length:
        return name
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]
    return f"{name[: max_length - len(digest) - 1]}_{digest}"


def qualify_table(table: str, schema: Optional[str] = None) -> str:
    """
    Create a fully qualified table name with optional schema prefix.

    Examples:
        >>> qualify_table("deal")
        '"deal"'
        >>> qualify_table("deal", schema="public")
        '"public"."deal"'
    """
    quoted_table = quote_identifier(table)
    if schema:
        return f"{quote_identifier(schema)}.{quoted_table}"
    return quoted_table


def quote_literal(value: str) -> str:
    """
    Quote a string literal, doubling embedded single quotes.

    Examples:
        >>> quote_literal("open")
        "'open'"
        >>> quote_literal("it's")
        "'it''s'"
    """
    return "'" + value.replace("'", "''") + "'"
