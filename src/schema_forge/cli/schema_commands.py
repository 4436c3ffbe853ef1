"""
Schema file commands: validate, compile, diff, resources.

Schema files are read as YAML when the suffix is ``.yaml``/``.yml`` and as
JSON otherwise. Results are printed to stdout; commands return a process
exit code instead of raising.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from schema_forge.domain.resources import create_registry, register_resources_from_schema
from schema_forge.domain.versioning import compare_snapshots
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.schema.ddl_generator import (
    CompilerOptions,
    compile_schema,
    statement_counts,
)
from schema_forge.infrastructure.validation import ValidationResult, validate
from schema_forge.utils.logging import get_logger

logger = get_logger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_schema_file(path: str) -> Mapping[str, Any]:
    """
    Read a candidate schema file.

    Raises:
        ValueError: If the file does not hold an object
        OSError: If the file cannot be read
    """
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() in YAML_SUFFIXES:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a schema object, got {type(data).__name__}")
    return data


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _load_and_validate(path: str) -> Tuple[Optional[ValidationResult], int]:
    try:
        candidate = load_schema_file(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("cli.schema_file_unreadable", path=path, error=str(exc))
        _emit({"passed": False, "errors": [{"rule": "file", "location": path, "message": str(exc)}]})
        return None, 2
    return validate(candidate), 0


def validate_command(path: str) -> int:
    result, code = _load_and_validate(path)
    if result is None:
        return code
    _emit(result.to_dict())
    return 0 if result.passed else 1


def compile_command(path: str, output: Optional[str] = None, options: Optional[CompilerOptions] = None) -> int:
    result, code = _load_and_validate(path)
    if result is None:
        return code
    if not result.passed:
        _emit(result.to_dict())
        return 1

    ddl = compile_schema(result.schema, options or CompilerOptions.from_settings())
    if output:
        Path(output).write_text(ddl.text, encoding="utf-8")
        _emit({"output": output, "fingerprint": ddl.fingerprint, "statements": statement_counts(ddl)})
    else:
        print(ddl.text, end="")
    return 0


def diff_command(old_path: str, new_path: str) -> int:
    schemas = []
    for path in (old_path, new_path):
        result, code = _load_and_validate(path)
        if result is None:
            return code
        if result.schema is None:
            _emit(result.to_dict())
            return 1
        schemas.append(result.schema)
    _emit(compare_snapshots(schemas[0], schemas[1]).to_dict())
    return 0


def resources_command(path: str) -> int:
    result, code = _load_and_validate(path)
    if result is None:
        return code
    if not result.passed:
        _emit(result.to_dict())
        return 1
    schema: EntitySchema = result.schema
    registry = create_registry()
    register_resources_from_schema(registry, schema)
    _emit(registry.to_json())
    return 0


__all__ = [
    "load_schema_file",
    "validate_command",
    "compile_command",
    "diff_command",
    "resources_command",
]
