"""Result types produced by a harness run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Item = dict[str, Any]


@dataclass
class ValidationReport:
    """Bounded list of problems found in one emission batch."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class PhaseResult:
    """What a single lifecycle phase produced."""

    phase: str
    items: list[Item] = field(default_factory=list)
    elapsed_ms: int = 0
    error: str | None = None
    report: ValidationReport = field(default_factory=ValidationReport)


@dataclass
class FetchResponse:
    """Normalized HTTP response handed to sources."""

    ok: bool
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""
    json: Any = None
    error: str | None = None


class OutcomeStatus(str, Enum):
    """Overall verdict of a harness run."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class HarnessOutcome:
    """Final result of a harness run, ready to be rendered."""

    status: OutcomeStatus
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skip_reasons: list[str] = field(default_factory=list)
    start_count: int = 0
    refresh_count: int | None = None
    duration_ms: int = 0

    @property
    def exit_code(self) -> int:
        return 1 if self.status == OutcomeStatus.FAIL else 0
