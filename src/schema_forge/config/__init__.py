"""Configuration management for SchemaForge.

This module provides centralized configuration loaded from environment variables
with validation using Pydantic BaseSettings.

Usage:
    >>> from schema_forge.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.max_tables)
"""

from schema_forge.config.settings import Settings, get_database_url, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "get_database_url",
]
