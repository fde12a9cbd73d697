"""Resolution of a source's effective configuration."""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sourcekit.models.manifest import ConfigSchemaEntry, ConfigType
from sourcekit.utils.logging_config import get_logger

logger = get_logger(__name__)

ResolvedConfig = dict[str, Any]


@dataclass(frozen=True)
class ConfigResolutionAbort:
    """Returned instead of a config when a required key cannot be resolved."""

    key: str

    @property
    def message(self) -> str:
        return (
            f'Required config "{self.key}" has no default. '
            f"Use --config {self.key}=VALUE to provide a value."
        )


_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_PREFIXED = re.compile(r"0(?:[xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)")
_INFINITY = re.compile(r"[+-]?Infinity")


def coerce_number(raw: str) -> int | float:
    """Parse ``raw`` as a number without rejecting bad input.

    Accepts decimal and exponent notation, ``0x``/``0o``/``0b`` integers and
    ``Infinity``. Blank text is 0 and anything else, including Python-only
    spellings such as ``1_000`` or ``inf``, is NaN.
    """
    text = raw.strip()
    if not text:
        return 0
    if _PREFIXED.fullmatch(text):
        return int(text, 0)
    if _DECIMAL.fullmatch(text):
        try:
            return int(text)
        except ValueError:
            return float(text)
    if _INFINITY.fullmatch(text):
        return float("-inf") if text.startswith("-") else float("inf")

    logger.warning(
        "Config override is not numeric",
        extra={"raw_value": raw},
    )
    return float("nan")


def coerce_override(entry: ConfigSchemaEntry, raw: str) -> Any:
    """Convert a raw ``--config`` string into the entry's declared type."""
    if entry.type == ConfigType.LIST:
        return [segment.strip() for segment in raw.split(",")]
    if entry.type == ConfigType.BOOLEAN:
        return raw in ("true", "1")
    if entry.type == ConfigType.NUMBER:
        return coerce_number(raw)
    return raw


def resolve_config(
    schema: Sequence[ConfigSchemaEntry], overrides: Mapping[str, str]
) -> ResolvedConfig | ConfigResolutionAbort:
    """Compute config values in manifest order.

    Stops at the first required entry that has neither an override nor a
    default and returns a ``ConfigResolutionAbort`` for it.
    """
    resolved: ResolvedConfig = {}

    for entry in schema:
        if entry.key in overrides:
            resolved[entry.key] = coerce_override(entry, overrides[entry.key])
        elif entry.has_default:
            resolved[entry.key] = entry.default
        elif entry.required:
            logger.info(
                "Required config has no value",
                extra={"config_key": entry.key},
            )
            return ConfigResolutionAbort(key=entry.key)

    logger.debug(
        "Resolved config",
        extra={"config_keys": list(resolved), "override_keys": list(overrides)},
    )
    return resolved


def missing_required(
    schema: Sequence[ConfigSchemaEntry], overrides: Mapping[str, str]
) -> list[str]:
    """List every required key lacking both an override and a default."""
    return [
        entry.key
        for entry in schema
        if entry.required and entry.key not in overrides and not entry.has_default
    ]


def parse_overrides(pairs: Iterable[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` strings into an override mapping."""
    overrides: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            logger.warning("Ignoring malformed --config value", extra={"value": pair})
            continue
        overrides[key] = value
    return overrides
