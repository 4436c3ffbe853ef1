"""Schema versioning records and snapshot diffing.

``VersionStore`` lives in ``schema_forge.domain.versioning.version_store``;
it is not re-exported here because the repositories import these records.
"""

from .diff import compare_snapshots
from .models import DecisionTrace, SchemaVersion, TableChange, VersionDiff

__all__ = [
    "SchemaVersion",
    "DecisionTrace",
    "TableChange",
    "VersionDiff",
    "compare_snapshots",
]
