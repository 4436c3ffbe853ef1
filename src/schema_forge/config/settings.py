"""
Configuration management for SchemaForge.

This module provides environment-based configuration using Pydantic BaseSettings,
allowing for flexible deployment across development, testing, and production
environments while keeping schema limits, compiler options and provisioning
behaviour in one place.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("SF_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are automatically loaded with the SF_ prefix.
    For example, SF_MAX_TABLES will override the max_tables setting.

    Un-prefixed fields:
    - ENVIRONMENT: Deployment environment (dev, staging, prod)
    - LOG_LEVEL: Logging level (uppercase)
    """

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        validation_alias="ENVIRONMENT",
        description="Deployment environment",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (uppercase)",
    )

    app_name: str = Field(default="SchemaForge", description="Application name")

    # Logging
    log_to_file: bool = Field(
        default=False,
        validation_alias=AliasChoices("SF_LOG_TO_FILE", "LOG_TO_FILE"),
        description="Also write JSON logs to a daily rotating file",
    )
    log_file_dir: str = Field(
        default="logs",
        validation_alias=AliasChoices("SF_LOG_FILE_DIR", "LOG_FILE_DIR"),
        description="Directory for rotating log files",
    )
    log_max_field_length: int = Field(
        default=2000,
        description="String log fields longer than this (DDL text, snapshots) are truncated",
    )

    # Database
    database_uri: str = Field(
        default="sqlite:///schema_forge_dev.db",
        description="Complete database URI",
        validation_alias=AliasChoices("SF_DATABASE__URI", "SF_DATABASE_URI", "DATABASE_URL"),
    )

    # Schema limits enforced by the validator
    max_tables: int = Field(default=15, description="Maximum tables per schema")
    max_columns_per_table: int = Field(
        default=50, description="Maximum columns per table"
    )
    max_reference_depth: int = Field(
        default=3, description="Maximum length of a foreign-key reference chain"
    )
    max_identifier_length: int = Field(
        default=63, description="PostgreSQL identifier length limit"
    )

    # Compiler options
    rls_principal_expression: str = Field(
        default="auth.uid()",
        description="SQL expression resolving the requesting principal in RLS policies",
    )
    rls_policy_role: str = Field(
        default="authenticated", description="Role the isolation policy applies to"
    )
    updated_at_function: str = Field(
        default="update_updated_at_column",
        description="Shared trigger function that maintains updated_at",
    )

    # Provisioning
    provisioning_strategy: Literal["auto", "atomic", "per_entity"] = Field(
        default="auto",
        description="Executor selection; auto probes the database capabilities",
    )

    # Refinement sessions
    ai_timeout_seconds: float = Field(
        default=60.0, description="Upper bound for one AI collaborator call"
    )
    refinement_history_window: int = Field(
        default=5, description="Number of recent messages sent to the collaborator"
    )

    # Schema edit locks
    schema_lock_default_minutes: int = Field(
        default=5, description="Default schema edit lock duration"
    )
    schema_lock_max_minutes: int = Field(
        default=10, description="Maximum schema edit lock duration"
    )

    # Version store
    version_list_limit: int = Field(
        default=20, description="Default page size when listing versions"
    )

    def get_database_connection_string(self) -> str:
        """Get the database connection string.

        Automatically corrects 'postgres://' scheme to 'postgresql://' for
        SQLAlchemy compatibility.
        """
        final_uri = self.database_uri
        if final_uri.startswith("postgres://"):
            final_uri = final_uri.replace("postgres://", "postgresql://", 1)
        return final_uri

    @model_validator(mode="after")
    def validate_production_database_url(self) -> "Settings":
        """Validate that production environment uses PostgreSQL.

        Row-level security and transactional DDL are PostgreSQL features, so
        other backends are only acceptable outside production.

        Raises:
            ValueError: If ENVIRONMENT is 'prod' and database URL is not PostgreSQL
        """
        db_url = self.get_database_connection_string()

        if self.ENVIRONMENT == "prod" and not db_url.startswith("postgresql"):
            db_url_preview = db_url[:20]
            raise ValueError(
                "Production environment requires PostgreSQL database. "
                f"Database URL must start with 'postgresql', "
                f"got: {db_url_preview}..."
            )

        return self

    @model_validator(mode="after")
    def validate_lock_bounds(self) -> "Settings":
        """Reject lock settings where the default exceeds the maximum."""
        if self.schema_lock_default_minutes < 1:
            raise ValueError("schema_lock_default_minutes must be at least 1")
        if self.schema_lock_default_minutes > self.schema_lock_max_minutes:
            raise ValueError(
                "schema_lock_default_minutes cannot exceed schema_lock_max_minutes "
                f"({self.schema_lock_default_minutes} > {self.schema_lock_max_minutes})"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="SF_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded once and reused across
    the application lifecycle.

    Returns:
        Settings instance with loaded configuration
    """
    settings = Settings()
    logger.debug(
        "configuration.loaded",
        environment=settings.ENVIRONMENT,
        provisioning_strategy=settings.provisioning_strategy,
    )
    return settings


def get_database_url(settings: Optional[Settings] = None) -> str:
    """Return the connection string defined by application settings."""
    return (settings or get_settings()).get_database_connection_string()
