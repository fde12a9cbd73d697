"""End-to-end test run of a source directory."""

import os
import sys
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TextIO

import httpx

from sourcekit.core.capabilities import SourceAPI
from sourcekit.core.config import ConfigResolutionAbort, missing_required, resolve_config
from sourcekit.core.errors import CompileError, LoadError, ManifestError, StartPhaseError
from sourcekit.core.executor import PhaseExecutor
from sourcekit.core.loader import compile_source, load_factory, read_source
from sourcekit.models.manifest import load_manifest
from sourcekit.models.results import HarnessOutcome, OutcomeStatus
from sourcekit.utils.logging_config import get_logger
from sourcekit.utils.settings import HarnessSettings

logger = get_logger(__name__)

MANIFEST_FILE = "manifest.yaml"
ENTRY_FILE = Path("src") / "index.py"


def _failure(message: str, began: float) -> HarnessOutcome:
    return HarnessOutcome(
        status=OutcomeStatus.FAIL,
        errors=[message],
        duration_ms=int((time.monotonic() - began) * 1000),
    )


async def run_harness(
    source_dir: str | Path,
    overrides: Mapping[str, str] | None = None,
    settings: HarnessSettings | None = None,
    client: httpx.AsyncClient | None = None,
    on_start: Callable[[], None] | None = None,
) -> HarnessOutcome:
    """Load, run and validate the source in ``source_dir``.

    ``on_start`` is called once config has resolved, just before the source
    is compiled. It is not called for a run that ends in SKIP.
    """
    root = Path(source_dir)
    overrides = dict(overrides or {})
    settings = settings or HarnessSettings()
    began = time.monotonic()

    manifest_path = root / MANIFEST_FILE
    entry_path = root / ENTRY_FILE
    if not manifest_path.is_file():
        return _failure(f"{MANIFEST_FILE} not found", began)
    if not entry_path.is_file():
        return _failure(f"{ENTRY_FILE.as_posix()} not found", began)

    try:
        manifest = load_manifest(manifest_path)
    except ManifestError as e:
        return _failure(str(e), began)

    config = resolve_config(manifest.config, overrides)
    if isinstance(config, ConfigResolutionAbort):
        reasons = [
            ConfigResolutionAbort(key=key).message
            for key in missing_required(manifest.config, overrides)
        ]
        logger.info(
            "Skipping source with unresolved config",
            extra={"source_name": manifest.name, "config_key": config.key},
        )
        return HarnessOutcome(status=OutcomeStatus.SKIP, skip_reasons=reasons or [config.message])

    logger.info(
        "Testing source",
        extra={"source_name": manifest.name, "source_version": manifest.version},
    )
    if on_start is not None:
        on_start()

    try:
        code = compile_source(read_source(entry_path), str(entry_path))
    except CompileError as e:
        return _failure(f"Compilation failed: {e}", began)

    api = SourceAPI(
        config,
        client=client,
        fetch_timeout_ms=settings.fetch_timeout_ms,
        app_version=settings.app_version,
    )
    executor = PhaseExecutor(api, settings)
    began = time.monotonic()

    try:
        try:
            executor.load(load_factory(code))
        except LoadError as e:
            return _failure(str(e), began)

        try:
            results = await executor.run()
        except StartPhaseError as e:
            return _failure(f"Start phase error: {e}", began)
    finally:
        await api.aclose()

    errors: list[str] = []
    warnings: list[str] = []
    for result in results:
        if result.error:
            errors.append(result.error)
        errors.extend(result.report.errors)
        warnings.extend(result.report.warnings)

    start_result = results[0]
    refresh_result = results[1] if len(results) > 1 else None
    refresh_count = None
    if refresh_result is not None and refresh_result.error is None:
        refresh_count = len(refresh_result.items)

    outcome = HarnessOutcome(
        status=OutcomeStatus.FAIL if errors else OutcomeStatus.PASS,
        errors=errors,
        warnings=warnings,
        start_count=len(start_result.items),
        refresh_count=refresh_count,
        duration_ms=int((time.monotonic() - began) * 1000),
    )
    logger.info(
        "Source test finished",
        extra={
            "source_name": manifest.name,
            "status": outcome.status.value,
            "error_count": len(errors),
            "warning_count": len(warnings),
            "duration_ms": outcome.duration_ms,
        },
    )
    return outcome


class _Palette:
    """ANSI colouring that switches itself off for non-terminals."""

    CODES = {"green": 32, "red": 31, "yellow": 33, "cyan": 36, "dim": 2, "bold": 1}

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled

    def __getattr__(self, name: str):
        code = self.CODES.get(name)
        if code is None:
            raise AttributeError(name)
        if not self.enabled:
            return lambda text: text
        return lambda text: f"\x1b[{code}m{text}\x1b[0m"


def use_color(stream: TextIO) -> bool:
    return stream.isatty() and "NO_COLOR" not in os.environ


def render_outcome(outcome: HarnessOutcome, color: bool = False) -> str:
    """Format an outcome as the human-readable report."""
    c = _Palette(color)
    lines: list[str] = []

    if outcome.status == OutcomeStatus.SKIP:
        lines.append(f"{c.yellow('SKIP')} Missing required config:")
        for reason in outcome.skip_reasons:
            lines.append(f"  {c.yellow('warning')}: {reason}")
        return "\n".join(lines)

    rule = "─" * 60
    duration = c.dim(f"({outcome.duration_ms}ms)")
    lines.extend(["", c.bold("Test Results"), rule])

    if outcome.status == OutcomeStatus.PASS:
        counts = f"{outcome.start_count} items"
        if outcome.refresh_count is not None:
            counts += f", refresh: {outcome.refresh_count}"
        lines.append(f"  {c.green('PASS')} {counts} {duration}")
    else:
        lines.append(f"  {c.red('FAIL')} {duration}")
        for error in outcome.errors:
            lines.append(f"    {c.red('error')}: {error}")
    for warning in outcome.warnings:
        lines.append(f"    {c.yellow('warning')}: {warning}")

    lines.append(rule)
    return "\n".join(lines)


def print_outcome(outcome: HarnessOutcome, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(render_outcome(outcome, color=use_color(stream)), file=stream)
