"""Drives a loaded source through its start, refresh and stop phases."""

import asyncio
import inspect
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from sourcekit.core.capabilities import SourceAPI
from sourcekit.core.errors import LoadError, RefreshPhaseError, StartPhaseError
from sourcekit.core.loader import SourceHandle
from sourcekit.core.validator import validate_items
from sourcekit.models.results import PhaseResult
from sourcekit.utils.logging_config import get_logger
from sourcekit.utils.settings import HarnessSettings

logger = get_logger(__name__)

START_PHASE = "start phase"
REFRESH_PHASE = "refresh phase"
STOP_PHASE = "stop phase"


class PhaseTimeout(Exception):
    """The phase deadline expired before the handler finished."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"timed out after {seconds:g}s")
        self.seconds = seconds


class PhaseState(str, Enum):
    """Lifecycle states of a source under test."""

    COMPILED = "compiled"
    LOADED = "loaded"
    STARTING = "starting"
    START_OK = "start_ok"
    START_FAILED = "start_failed"
    REFRESHING = "refreshing"
    REFRESH_OK = "refresh_ok"
    REFRESH_FAILED = "refresh_failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PhaseExecutor:
    """Runs one source's lifecycle against a ``SourceAPI``.

    Phases run strictly one after another. A phase that outlives the
    timeout has its task cancelled, which also aborts any ``fetch`` it is
    awaiting. Synchronous handler code cannot be interrupted.
    """

    def __init__(self, api: SourceAPI, settings: HarnessSettings | None = None) -> None:
        self.api = api
        self.settings = settings or HarnessSettings()
        self.state = PhaseState.COMPILED
        self.handle: SourceHandle | None = None
        self.results: dict[str, PhaseResult] = {}
        self._factory: Callable[..., Any] | None = None

    def _transition(self, state: PhaseState) -> None:
        logger.debug(
            "Phase transition",
            extra={"from_state": self.state.value, "to_state": state.value},
        )
        self.state = state

    def load(self, factory: Callable[..., Any]) -> None:
        """Accept the factory exported by the compiled source."""
        if not callable(factory):
            raise LoadError("Default export is not a function")
        self._factory = factory
        self._transition(PhaseState.LOADED)

    async def _invoke(self, func: Callable[..., Any], *args: Any) -> Any:
        """Call ``func`` and await its result, if any, under the phase timeout.

        Only the phase deadline expiring raises ``PhaseTimeout``; a
        ``TimeoutError`` raised by the handler itself propagates unchanged.
        """
        result = func(*args)
        if not inspect.isawaitable(result):
            return result

        deadline = asyncio.timeout(self.settings.phase_timeout)
        try:
            async with deadline:
                return await result
        except TimeoutError as e:
            if deadline.expired():
                raise PhaseTimeout(self.settings.phase_timeout) from e
            raise

    async def _guarded(
        self,
        label: str,
        error_cls: type[Exception],
        func: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """``_invoke`` with every failure re-raised as ``error_cls``."""
        try:
            return await self._invoke(func, *args)
        except PhaseTimeout as e:
            raise error_cls(f"{label} phase timed out ({e.seconds:g}s)") from e
        except SystemExit as e:
            logger.debug(
                "Phase handler called sys.exit",
                extra={"phase": label, "exit_code": e.code},
            )
            raise error_cls(f"source called sys.exit({e.code!r})") from e
        except Exception as e:
            logger.debug(
                "Phase handler raised",
                extra={"phase": label, "error": str(e), "error_type": type(e).__name__},
            )
            raise error_cls(str(e) or type(e).__name__) from e

    def _conclude(self, phase: str, emitted_before: int, began: float) -> PhaseResult:
        """Validate the last batch emitted during a phase and record it."""
        batches = self.api.batches_since(emitted_before)
        items = batches[-1] if batches else []
        result = PhaseResult(
            phase=phase,
            items=items,
            elapsed_ms=int((time.monotonic() - began) * 1000),
            report=validate_items(
                items,
                phase,
                max_items=self.settings.max_items,
                max_messages=self.settings.max_messages,
            ),
        )
        self.results[phase] = result
        logger.info(
            "Phase completed",
            extra={
                "phase": phase,
                "item_count": len(items),
                "batch_count": len(batches),
                "elapsed_ms": result.elapsed_ms,
                "error_count": len(result.report.errors),
                "warning_count": len(result.report.warnings),
            },
        )
        return result

    async def start(self) -> PhaseResult:
        """Invoke the factory. Any failure here is fatal."""
        if self.state != PhaseState.LOADED or self._factory is None:
            raise RuntimeError(f"Cannot start from state {self.state.value}")

        self._transition(PhaseState.STARTING)
        emitted_before = self.api.emit_count
        began = time.monotonic()
        try:
            returned = await self._guarded("Start", StartPhaseError, self._factory, self.api)
        except StartPhaseError as e:
            self._transition(PhaseState.START_FAILED)
            logger.error("Start phase failed", extra={"phase": START_PHASE, "error": str(e)})
            raise

        self.handle = SourceHandle.from_result(returned)
        self._transition(PhaseState.START_OK)
        return self._conclude(START_PHASE, emitted_before, began)

    async def refresh(self) -> PhaseResult | None:
        """Run the refresh handler once, recording rather than raising errors."""
        if self.handle is None or self.handle.refresh is None:
            return None

        self._transition(PhaseState.REFRESHING)
        emitted_before = self.api.emit_count
        began = time.monotonic()
        try:
            await self._guarded("Refresh", RefreshPhaseError, self.handle.refresh)
        except RefreshPhaseError as e:
            self._transition(PhaseState.REFRESH_FAILED)
            logger.error(
                "Refresh phase failed",
                extra={"phase": REFRESH_PHASE, "error": str(e)},
            )
            result = PhaseResult(
                phase=REFRESH_PHASE,
                elapsed_ms=int((time.monotonic() - began) * 1000),
                error=f"Refresh phase error: {e}",
            )
            self.results[REFRESH_PHASE] = result
            return result

        self._transition(PhaseState.REFRESH_OK)
        return self._conclude(REFRESH_PHASE, emitted_before, began)

    async def stop(self) -> None:
        """Run the stop handler once. Its errors are discarded."""
        self._transition(PhaseState.STOPPING)
        if self.handle is not None and self.handle.stop is not None:
            try:
                await self._invoke(self.handle.stop)
            except (Exception, SystemExit) as e:
                logger.debug(
                    "Ignoring stop phase error",
                    extra={"phase": STOP_PHASE, "error": str(e), "error_type": type(e).__name__},
                )
        self._transition(PhaseState.STOPPED)

    async def run(self) -> list[PhaseResult]:
        """Start, refresh and stop the source.

        Raises ``StartPhaseError`` without running later phases when start
        fails. Stop always runs once start has succeeded.
        """
        results = [await self.start()]
        refreshed = await self.refresh()
        if refreshed is not None:
            results.append(refreshed)
        await self.stop()
        return results
