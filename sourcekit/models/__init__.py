"""Data models shared by the harness."""

from sourcekit.models.manifest import (
    ConfigSchemaEntry,
    ConfigType,
    SourceManifest,
    load_manifest,
)
from sourcekit.models.results import (
    FetchResponse,
    HarnessOutcome,
    Item,
    OutcomeStatus,
    PhaseResult,
    ValidationReport,
)

__all__ = [
    "ConfigSchemaEntry",
    "ConfigType",
    "FetchResponse",
    "HarnessOutcome",
    "Item",
    "OutcomeStatus",
    "PhaseResult",
    "SourceManifest",
    "ValidationReport",
    "load_manifest",
]
