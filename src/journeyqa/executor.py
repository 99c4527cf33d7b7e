"""
Journey executor.

Runs a journey definition against the driver facade, one step at a time in
declared order:
- Per-step error policy (continue / retry / fail)
- Selector resolution through SelectorResolver with visibility/enabled gating
- Per-step timeouts on driver calls
- Cooperative journey time budget, checked between steps only
- Screenshot artifacts handed to the caller-supplied sink
- Observer callbacks that never affect control flow
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar
from urllib.parse import urlparse

import structlog

from journeyqa.config import EngineSettings
from journeyqa.driver import ArtifactSink, MemoryArtifactSink
from journeyqa.errors import (
    ActionError,
    JourneyError,
    JourneyTimeoutError,
    ResolutionError,
    StepAssertionError,
    StepFailure,
)
from journeyqa.models import (
    ErrorKind,
    ErrorPolicy,
    JourneyDefinition,
    JourneyResult,
    JourneyStep,
    PerformanceMetrics,
    ResolveOptions,
    SelectorStrategy,
    SlowestStep,
    StepAction,
    StepError,
)
from journeyqa.resolver import SelectorResolver

if TYPE_CHECKING:
    from journeyqa.driver import BrowserDriver, ElementHandle

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Pause used by a wait step that names neither a selector nor a condition
BARE_WAIT_MS = 1000


class JourneyState(StrEnum):
    """Lifecycle of a journey run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepState(StrEnum):
    """Lifecycle of a single step attempt."""

    ATTEMPTING = "attempting"
    OK = "ok"
    FAILED = "failed"


@dataclass
class RunOptions:
    """Per-run options for ``JourneyExecutor.run``."""

    base_url: str | None = None
    max_duration: int | None = None
    screenshot_on_failure: bool = False


class JourneyObserver(Protocol):
    """Receives step notifications during a run."""

    def on_step_complete(self, step: JourneyStep, result: Any) -> None: ...

    def on_error(self, step: JourneyStep, error: JourneyError) -> None: ...


class NullObserver:
    """Observer that ignores everything."""

    def on_step_complete(self, step: JourneyStep, result: Any) -> None:
        pass

    def on_error(self, step: JourneyStep, error: JourneyError) -> None:
        pass


class LoggingObserver:
    """Observer that writes step notifications to the log."""

    def __init__(self) -> None:
        self._log = logger.bind(component="journey_observer")

    def on_step_complete(self, step: JourneyStep, result: Any) -> None:
        self._log.info("Step completed", step=step.id, action=step.action, result=str(result))

    def on_error(self, step: JourneyStep, error: JourneyError) -> None:
        self._log.error("Journey step error", step=step.id, action=step.action, error=str(error))


@dataclass
class _StepOutcome:
    ok: bool
    duration_ms: int
    attempts: int
    result: Any = None
    error: JourneyError | None = None


def _elapsed_ms(since: float) -> int:
    return int((time.monotonic() - since) * 1000)


def _error_kind(error: JourneyError) -> ErrorKind:
    match error:
        case ResolutionError():
            return ErrorKind.RESOLUTION
        case StepAssertionError():
            return ErrorKind.ASSERTION
        case JourneyTimeoutError():
            return ErrorKind.TIMEOUT
        case _:
            return ErrorKind.ACTION


def join_url(value: str, base_url: str | None) -> str:
    """Join a relative navigate value onto the base URL; absolute URLs pass through."""
    if urlparse(value).scheme or not base_url:
        return value
    return f"{base_url.rstrip('/')}/{value.lstrip('/')}"


class JourneyExecutor:
    """
    Executes journey definitions against a BrowserDriver.

    One executor runs one journey at a time; a second concurrent ``run`` on
    the same executor raises RuntimeError. Running several executors against
    the same driver at once is the caller's responsibility to avoid.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        resolver: SelectorResolver | None = None,
        sink: ArtifactSink | None = None,
        observer: JourneyObserver | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._driver = driver
        self._resolver = resolver or SelectorResolver(driver)
        self._sink = sink if sink is not None else MemoryArtifactSink()
        self._observer = observer if observer is not None else NullObserver()
        self._settings = settings if settings is not None else EngineSettings()
        self._running = False
        self._log = logger.bind(component="journey_executor")

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(
        self,
        definition: JourneyDefinition,
        options: RunOptions | None = None,
    ) -> JourneyResult:
        """
        Run a journey and return its result.

        Args:
            definition: Journey to execute (not modified)
            options: Base URL, time budget and failure-screenshot options

        Returns:
            JourneyResult with errors attached to their step ids
        """
        if self._running:
            raise RuntimeError("A journey is already running on this executor")

        opts = options or RunOptions()
        max_duration = (
            opts.max_duration if opts.max_duration is not None else self._settings.max_duration_ms
        )
        journey_id = f"journey_{uuid.uuid4().hex[:12]}"
        log = self._log.bind(journey=definition.name, journey_id=journey_id)

        state = JourneyState.PENDING
        errors: list[StepError] = []
        screenshots: list[str] = []
        timings: list[tuple[str, int]] = []
        completed_steps = 0
        aborted = False

        self._running = True
        started = time.monotonic()
        try:
            state = JourneyState.RUNNING
            log.info(
                "Starting journey",
                steps=len(definition.steps),
                base_url=opts.base_url,
                max_duration=max_duration,
            )

            for index, step in enumerate(definition.steps):
                elapsed = _elapsed_ms(started)
                if max_duration is not None and elapsed > max_duration:
                    timeout_error = JourneyTimeoutError(
                        f"Journey timeout exceeded {max_duration}ms", step_id=step.id
                    )
                    errors.append(self._step_error(step, index, timeout_error))
                    self._notify_error(step, timeout_error)
                    log.warning(
                        "Journey time budget exhausted, aborting remaining steps",
                        elapsed_ms=elapsed,
                        remaining_steps=len(definition.steps) - index,
                    )
                    aborted = True
                    break

                outcome = await self._run_step(step, opts, screenshots)

                if outcome.ok:
                    completed_steps += 1
                    timings.append((step.id, outcome.duration_ms))
                    self._notify_complete(step, outcome.result)
                    continue

                error = outcome.error or ActionError("Unknown error", step_id=step.id)
                screenshot = None
                if opts.screenshot_on_failure:
                    screenshot = await self._capture_failure_screenshot(step, screenshots)
                errors.append(self._step_error(step, index, error, screenshot))
                self._notify_error(step, error)

                if step.on_error == ErrorPolicy.CONTINUE:
                    log.warning(
                        "Step failed, continuing",
                        step=step.id,
                        action=step.action,
                        error=str(error),
                    )
                    continue

                log.error(
                    "Step failed, stopping journey",
                    step=step.id,
                    action=step.action,
                    attempts=outcome.attempts,
                    error=str(error),
                )
                aborted = True
                break
        finally:
            self._running = False

        duration = _elapsed_ms(started)
        state = JourneyState.FAILED if aborted else JourneyState.SUCCEEDED

        log.info(
            "Journey finished",
            state=state,
            completed=completed_steps,
            total=len(definition.steps),
            errors=len(errors),
            duration_ms=duration,
        )

        return JourneyResult(
            success=state == JourneyState.SUCCEEDED,
            duration=duration,
            completed_steps=completed_steps,
            total_steps=len(definition.steps),
            journey_id=journey_id,
            screenshots=tuple(screenshots),
            errors=tuple(errors),
            performance_metrics=self._performance_metrics(timings, duration),
        )

    async def _run_step(
        self,
        step: JourneyStep,
        opts: RunOptions,
        screenshots: list[str],
    ) -> _StepOutcome:
        """Attempt a step, re-attempting under the retry policy."""
        attempts = 1 + step.retry_count if step.on_error == ErrorPolicy.RETRY else 1
        started = time.monotonic()
        last_error: JourneyError | None = None

        for attempt in range(attempts):
            self._log.debug(
                "Executing step",
                step=step.id,
                action=step.action,
                state=StepState.ATTEMPTING,
                attempt=attempt + 1,
                max_attempts=attempts,
            )
            try:
                result = await self._perform(step, opts, screenshots)
            except StepFailure as e:
                last_error = e
                self._log.debug(
                    "Step attempt failed",
                    step=step.id,
                    state=StepState.FAILED,
                    attempt=attempt + 1,
                    error=str(e),
                )
                continue

            self._log.debug("Step attempt succeeded", step=step.id, state=StepState.OK)
            return _StepOutcome(
                ok=True,
                duration_ms=_elapsed_ms(started),
                attempts=attempt + 1,
                result=result,
            )

        return _StepOutcome(
            ok=False,
            duration_ms=_elapsed_ms(started),
            attempts=attempts,
            error=last_error,
        )

    async def _perform(
        self,
        step: JourneyStep,
        opts: RunOptions,
        screenshots: list[str],
    ) -> Any:
        match step.action:
            case StepAction.NAVIGATE:
                if not step.value:
                    raise ActionError("Navigate action requires a URL value", step_id=step.id)
                url = join_url(step.value, opts.base_url)
                await self._call(step, self._driver.navigate(url))
                await self._call(step, self._driver.wait_for_load_idle())
                return url

            case StepAction.CLICK:
                handle = await self._resolve(step)
                await self._call(step, self._driver.click(handle))
                return step.selector

            case StepAction.TYPE:
                if step.value is None:
                    raise ActionError("Type action requires a value", step_id=step.id)
                handle = await self._resolve(step)
                await self._call(step, self._driver.type(handle, step.value))
                return step.value

            case StepAction.WAIT:
                return await self._wait(step)

            case StepAction.ASSERT:
                if not step.condition:
                    raise ActionError("Assert action requires a condition", step_id=step.id)
                outcome = await self._call(step, self._driver.evaluate(step.condition))
                if not outcome:
                    raise StepAssertionError(
                        f"Assertion failed for step {step.id}: {step.condition}",
                        step_id=step.id,
                    )
                return outcome

            case StepAction.SCREENSHOT:
                data = await self._call(step, self._driver.screenshot())
                name = step.value or f"journey_step_{step.id}"
                try:
                    ref = self._sink.store(name, data)
                except Exception as e:
                    raise ActionError(
                        f"Failed to store screenshot {name}: {e}", step_id=step.id
                    ) from e
                screenshots.append(ref)
                return ref

        raise ActionError(f"Unknown action: {step.action}", step_id=step.id)

    def _timeout_ms(self, step: JourneyStep) -> int:
        """Step timeout, falling back to the engine default."""
        return step.timeout if step.timeout is not None else self._settings.default_timeout_ms

    async def _call(self, step: JourneyStep, awaitable: Awaitable[T]) -> T:
        """Await a driver call bounded by the step timeout, mapping failures to ActionError."""
        timeout_ms = self._timeout_ms(step)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
        except TimeoutError as e:
            raise ActionError(
                f"{step.action} timed out after {timeout_ms}ms", step_id=step.id
            ) from e
        except JourneyError:
            raise
        except Exception as e:
            raise ActionError(f"{step.action} failed: {e}", step_id=step.id) from e

    async def _resolve(self, step: JourneyStep) -> ElementHandle:
        if not step.selector:
            raise ActionError(f"{step.action} action requires a selector", step_id=step.id)

        timeout_ms = self._timeout_ms(step)
        strategies = [SelectorStrategy.parse(step.selector)]
        poll = self._settings.poll_interval_ms / 1000
        deadline = time.monotonic() + timeout_ms / 1000

        # Poll until the element is present and ready or the step deadline passes
        while True:
            remaining_ms = max(int((deadline - time.monotonic()) * 1000), 0)
            options = ResolveOptions(
                timeout_ms=remaining_ms,
                wait_for_visible=True,
                wait_for_enabled=True,
                poll_interval_ms=self._settings.poll_interval_ms,
            )
            try:
                handle = await self._resolver.resolve(strategies, options)
            except Exception as e:
                raise ActionError(
                    f"Driver failed while resolving {step.selector}: {e}", step_id=step.id
                ) from e
            if handle is not None:
                return handle

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ResolutionError(
                    f"Element not found within {timeout_ms}ms: {step.selector}",
                    step_id=step.id,
                )
            await asyncio.sleep(min(poll, remaining))

    async def _wait(self, step: JourneyStep) -> Any:
        if not step.condition and not step.selector:
            pause_ms = step.timeout if step.timeout is not None else BARE_WAIT_MS
            await asyncio.sleep(pause_ms / 1000)
            return True

        timeout_ms = self._timeout_ms(step)
        deadline = time.monotonic() + timeout_ms / 1000
        poll = self._settings.poll_interval_ms / 1000

        while True:
            if step.condition:
                if await self._call(step, self._driver.evaluate(step.condition)):
                    return True
            else:
                selector = SelectorStrategy.parse(step.selector or "").to_selector()
                if await self._call(step, self._driver.locate(selector)) is not None:
                    return step.selector

            if time.monotonic() >= deadline:
                break
            await asyncio.sleep(poll)

        if step.condition:
            raise ActionError(
                f"Wait condition not met within {timeout_ms}ms: {step.condition}",
                step_id=step.id,
            )
        raise ResolutionError(
            f"Element not found within {timeout_ms}ms: {step.selector}", step_id=step.id
        )

    async def _capture_failure_screenshot(
        self,
        step: JourneyStep,
        screenshots: list[str],
    ) -> str | None:
        try:
            data = await self._driver.screenshot()
            ref = self._sink.store(f"error_{step.id}", data)
        except Exception as e:
            self._log.warning("Failed to capture failure screenshot", step=step.id, error=str(e))
            return None
        screenshots.append(ref)
        return ref

    def _step_error(
        self,
        step: JourneyStep,
        index: int,
        error: JourneyError,
        screenshot: str | None = None,
    ) -> StepError:
        return StepError(
            step_id=step.id,
            step_index=index,
            kind=_error_kind(error),
            error=str(error),
            screenshot=screenshot,
        )

    def _notify_complete(self, step: JourneyStep, result: Any) -> None:
        try:
            self._observer.on_step_complete(step, result)
        except Exception as e:
            self._log.warning("Observer on_step_complete raised", step=step.id, error=str(e))

    def _notify_error(self, step: JourneyStep, error: JourneyError) -> None:
        try:
            self._observer.on_error(step, error)
        except Exception as e:
            self._log.warning("Observer on_error raised", step=step.id, error=str(e))

    @staticmethod
    def _performance_metrics(
        timings: list[tuple[str, int]],
        total_time: int,
    ) -> PerformanceMetrics | None:
        if not timings:
            return None
        slowest_id, slowest_duration = timings[0]
        for step_id, duration in timings[1:]:
            if duration > slowest_duration:
                slowest_id, slowest_duration = step_id, duration
        return PerformanceMetrics(
            total_time=total_time,
            average_step_time=sum(d for _, d in timings) / len(timings),
            slowest_step=SlowestStep(step_id=slowest_id, duration=slowest_duration),
        )
