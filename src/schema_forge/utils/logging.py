"""Structured logging for SchemaForge.

structlog is configured once, on import, to render JSON events through the
standard library root logger:

- events carry an ISO timestamp, level and logger name
- keys that look like credentials or connection strings are redacted,
  including inside nested dicts and lists
- long string values (compiled DDL, schema snapshots) are truncated to
  ``log_max_field_length`` characters
- output goes to stderr, plus a daily rotating file when ``SF_LOG_TO_FILE``
  is set (directory ``SF_LOG_FILE_DIR``)

Event names are dotted (``provisioning.table_failed``) and context is passed
as keyword arguments:

    >>> from schema_forge.utils.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("provisioning.started", project_id="p-1", tables=3)
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, NamedTuple

import structlog
from pydantic import ValidationError
from structlog.types import EventDict, Processor

from schema_forge.config import get_settings

SENSITIVE_KEY = re.compile(
    r"(password|token|api_key|secret|^(sf_)?database_+ur[il]$)",
    re.IGNORECASE,
)

REDACTED_VALUE = "[REDACTED]"
TRUNCATED_SUFFIX = "...[truncated]"


class _LogOptions(NamedTuple):
    level: int
    to_file: bool
    file_dir: Path
    max_field_length: int


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with sensitive keys redacted.

    Example:
        >>> sanitize_for_logging({"api_key": "sk-123", "table": "deal"})
        {'api_key': '[REDACTED]', 'table': 'deal'}
    """
    return {
        key: REDACTED_VALUE if SENSITIVE_KEY.search(str(key)) else _redact(value)
        for key, value in data.items()
    }


def truncate_value(value: Any, limit: int) -> Any:
    if isinstance(value, str) and limit > 0 and len(value) > limit:
        return value[:limit] + TRUNCATED_SUFFIX
    return value


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    return sanitize_for_logging(dict(event_dict))


def _truncation_processor(limit: int) -> Processor:
    def processor(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in event_dict.items():
            event_dict[key] = truncate_value(value, limit)
        return event_dict

    return processor


def _load_options() -> _LogOptions:
    try:
        settings = get_settings()
    except ValidationError:
        # The settings error surfaces at the next get_settings() call.
        return _LogOptions(
            level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
            to_file=os.getenv("SF_LOG_TO_FILE", "").lower() in ("1", "true", "yes"),
            file_dir=Path(os.getenv("SF_LOG_FILE_DIR", "logs")),
            max_field_length=2000,
        )
    return _LogOptions(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        to_file=settings.log_to_file,
        file_dir=Path(settings.log_file_dir),
        max_field_length=settings.log_max_field_length,
    )


def _file_handler(log_dir: Path, level: int) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(log_dir / f"schema-forge-{datetime.now():%Y%m%d}.log"),
        when="midnight",
        backupCount=14,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _configure_structlog() -> None:
    options = _load_options()
    logging.basicConfig(format="%(message)s", level=options.level, handlers=[])

    console = logging.StreamHandler()
    console.setLevel(options.level)
    logging.root.addHandler(console)
    if options.to_file:
        logging.root.addHandler(_file_handler(options.file_dir, options.level))

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            sanitization_processor,
            _truncation_processor(options.max_field_length),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_configure_structlog()


def get_logger(name: str) -> Any:
    """structlog logger for ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Any:
    """Logger with ``kwargs`` bound to every event it emits.

    Example:
        >>> log = bind_context(project_id="p-1", user_id="u-1")
        >>> log.info("pipeline.completed", version="1.0.0")
    """
    return structlog.get_logger().bind(**kwargs)
