"""Source manifest models and loader."""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from sourcekit.core.errors import ManifestError
from sourcekit.utils.logging_config import get_logger

logger = get_logger(__name__)


class ConfigType(str, Enum):
    """Value types a config entry may declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SECRET = "secret"
    SELECT = "select"
    LIST = "list"


class ConfigSchemaEntry(BaseModel):
    """One user-configurable value declared by a source."""

    key: str = Field(..., min_length=1)
    name: str
    type: ConfigType
    required: bool = False
    default: Any = None
    description: str | None = None
    options: list[Any] | None = None

    @property
    def has_default(self) -> bool:
        # An explicit ``default: null`` still counts as a default
        return "default" in self.model_fields_set


class SourceManifest(BaseModel):
    """Declarative metadata shipped next to a source."""

    version: str
    name: str
    description: str
    author: str
    category: str
    author_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    min_app_version: str | None = None
    config: list[ConfigSchemaEntry] = Field(default_factory=list)

    @field_validator("version", "min_app_version", mode="before")
    @classmethod
    def validate_version(cls, value: Any) -> Any:
        """Accept unquoted YAML versions such as ``1.0``."""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("config", mode="before")
    @classmethod
    def validate_config(cls, value: Any) -> Any:
        if value is None:
            return []
        return value

    @field_validator("config")
    @classmethod
    def validate_unique_keys(
        cls, value: list[ConfigSchemaEntry]
    ) -> list[ConfigSchemaEntry]:
        seen: set[str] = set()
        for entry in value:
            if entry.key in seen:
                raise ValueError(f'duplicate config key "{entry.key}"')
            seen.add(entry.key)
        return value


def load_manifest(path: str | Path) -> SourceManifest:
    """Read and validate a manifest.yaml file."""
    manifest_path = Path(path)
    if not manifest_path.is_file():
        raise ManifestError(f"{manifest_path.name} not found")

    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.error(
            "Failed to parse manifest YAML",
            extra={
                "manifest_path": str(manifest_path),
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        if isinstance(e, yaml.YAMLError):
            raise ManifestError(f"invalid YAML in {manifest_path.name}: {e}") from e
        raise ManifestError(f"cannot read {manifest_path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"{manifest_path.name} must contain a mapping")

    try:
        manifest = SourceManifest(**data)
    except ValidationError as e:
        logger.error(
            "Failed to validate manifest",
            extra={
                "manifest_path": str(manifest_path),
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise ManifestError(f"invalid manifest: {e}") from e

    logger.debug(
        "Loaded manifest",
        extra={
            "manifest_path": str(manifest_path),
            "source_name": manifest.name,
            "source_version": manifest.version,
            "config_keys": [entry.key for entry in manifest.config],
        },
    )
    return manifest
