"""Validation of items emitted by a source."""

from collections.abc import Mapping, Sequence
from typing import Any

from sourcekit.models.results import ValidationReport

MAX_ITEMS = 500
MAX_MESSAGES = 5


def _is_filled(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


class _CappedList:
    """Collects messages, keeping only the first ``limit`` of them."""

    def __init__(self, target: list[str], limit: int) -> None:
        self.target = target
        self.limit = limit
        self.count = 0

    def add(self, message: str) -> None:
        if self.count < self.limit:
            self.target.append(message)
        self.count += 1

    def summarize(self, noun: str) -> None:
        if self.count > self.limit:
            self.target.append(f"... and {self.count - self.limit} more {noun}")


def validate_items(
    items: Sequence[Any],
    phase: str,
    max_items: int = MAX_ITEMS,
    max_messages: int = MAX_MESSAGES,
) -> ValidationReport:
    """Check one emission batch and return a bounded report.

    The item-count ceiling is reported alongside per-item problems. An empty
    batch yields a single warning and nothing else.
    """
    report = ValidationReport()

    if len(items) > max_items:
        report.errors.append(f"{phase}: emitted {len(items)} items (max {max_items})")

    if not items:
        report.warnings.append(f"{phase}: zero items emitted")
        return report

    errors = _CappedList(report.errors, max_messages)
    warnings = _CappedList(report.warnings, max_messages)
    seen_ids: set[str] = set()

    for index, item in enumerate(items):
        prefix = f"{phase} item[{index}]"
        if not isinstance(item, Mapping):
            errors.add(f"{prefix}: item must be an object")
            continue

        item_id = item.get("id")
        if not _is_filled(item_id):
            errors.add(f'{prefix}: "id" is missing or empty')
            continue

        if not _is_filled(item.get("title")) and not _is_filled(item.get("subtitle")):
            errors.add(f'{prefix}: must have at least one of "title" or "subtitle"')
            continue

        if item_id in seen_ids:
            warnings.add(f'{prefix}: duplicate id "{item_id}"')
        seen_ids.add(item_id)

        subtitle = item.get("subtitle")
        if subtitle is not None and not isinstance(subtitle, str):
            warnings.add(f'{prefix}: "subtitle" should be a string')

        url = item.get("url")
        if url is not None:
            if not isinstance(url, str):
                warnings.add(f'{prefix}: "url" should be a string')
            elif not url.startswith(("http://", "https://")):
                warnings.add(f'{prefix}: "url" does not start with http(s)://')

    errors.summarize("errors")
    warnings.summarize("warnings")
    return report
