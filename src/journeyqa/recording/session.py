"""
Recording session lifecycle.

States: created -> recording <-> paused -> stopped (terminal).

While recording, browser events arrive through exposed host functions and the
navigation callback. The callbacks only wrap the payload in a
``CapturedEvent`` and push it to the session inbox; one consumer task turns
events into steps in arrival order, applying the capture-time rules:

- events captured while paused or stopped are dropped
- password inputs are never recorded
- an input on the same selector as the immediately preceding ``type`` step
  overwrites that step's value, so keystrokes collapse to the final value
- otherwise an event arriving within ``min_interaction_delay`` of the last
  recorded one is dropped (navigation is exempt)
- ``exclude_selectors`` / ``exclude_actions`` drop matching events

On stop the listeners are removed, the inbox is drained, and the steps go
through the filter pass, the optional selector upgrade, navigation merging
and duplicate removal before becoming a ``JourneyDefinition``.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from journeyqa.errors import SessionStateError
from journeyqa.models import (
    JourneyDefinition,
    JourneySource,
    JourneyStep,
    RecordingOptions,
    RecordingState,
    RecordingStatus,
    SelectorStrategy,
    StepAction,
)
from journeyqa.optimizer import merge_navigation_steps, remove_duplicate_interactions
from journeyqa.recording.events import (
    CLICK_FUNCTION,
    INPUT_FUNCTION,
    LISTENER_SCRIPT,
    TEARDOWN_SCRIPT,
    CapturedEvent,
    ElementInfo,
    EventInbox,
    EventKind,
)
from journeyqa.recording.selectors import (
    describe_click,
    describe_input,
    generate_selector,
    suggest_selectors,
)

if TYPE_CHECKING:
    from journeyqa.driver import ArtifactSink, BrowserDriver

logger = structlog.get_logger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def _payload(args: tuple[Any, ...]) -> dict[str, Any]:
    # Drivers differ in whether they pass a binding source before the payload
    for arg in reversed(args):
        if isinstance(arg, dict):
            return arg
    return {}


class RecordingSession:
    """Captures live interactions on one driver into journey steps."""

    def __init__(
        self,
        driver: BrowserDriver,
        options: RecordingOptions,
        session_id: str | None = None,
        sink: ArtifactSink | None = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.id = session_id or f"rec_{uuid.uuid4().hex[:12]}"
        self.name = options.name
        self.options = options
        self.steps: list[JourneyStep] = []
        self.screenshots: list[str] = []
        self.start_time = datetime.now(UTC)
        self.current_url: str | None = None
        self.state = RecordingState.CREATED
        self.events_recorded = 0
        self.events_filtered = 0

        self._driver = driver
        self._sink = sink
        self._clock = clock
        self._started_at = clock()
        self._inbox = EventInbox()
        self._consumer: asyncio.Task[None] | None = None
        self._last_recorded_at: float | None = None
        self._step_counter = 0
        self._log = logger.bind(component="recording_session", session_id=self.id)

    @property
    def driver(self) -> BrowserDriver:
        return self._driver

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def is_live(self) -> bool:
        return self.state in (RecordingState.RECORDING, RecordingState.PAUSED)

    async def start(self) -> None:
        """Register listeners and begin capturing."""
        if self.state != RecordingState.CREATED:
            raise SessionStateError(
                f"Recording session {self.id} cannot start from state {self.state}",
                session_id=self.id,
            )

        self.current_url = await self._driver.current_url()
        try:
            await self._driver.expose_host_function(CLICK_FUNCTION, self._on_click)
            await self._driver.expose_host_function(INPUT_FUNCTION, self._on_input)
            self._driver.on_navigation(self._on_navigation)
            await self._driver.evaluate(LISTENER_SCRIPT)
        except Exception:
            await self._detach()
            raise

        self._started_at = self._clock()
        self._consumer = asyncio.create_task(self._consume(), name=f"recording-{self.id}")
        self.state = RecordingState.RECORDING
        self._log.info("Started recording", name=self.name, url=self.current_url)

    def pause(self) -> None:
        """Stop capturing without touching recorded steps. No-op when already paused."""
        self._ensure_live("pause")
        if self.state == RecordingState.PAUSED:
            return
        self.state = RecordingState.PAUSED
        self._log.info("Paused recording", steps=len(self.steps))

    def resume(self) -> None:
        """Resume capturing. No-op when already recording."""
        self._ensure_live("resume")
        if self.state == RecordingState.RECORDING:
            return
        self.state = RecordingState.RECORDING
        self._log.info("Resumed recording", steps=len(self.steps))

    async def flush(self) -> None:
        """Wait until every event captured so far has been turned into steps."""
        await self._inbox.join()

    async def stop(self) -> JourneyDefinition:
        """Deregister listeners, post-process the steps and build the journey."""
        if self.state == RecordingState.STOPPED:
            raise SessionStateError(
                f"Recording session {self.id} is already stopped", session_id=self.id
            )

        self.state = RecordingState.STOPPED
        await self._detach()

        self._inbox.close()
        if self._consumer is not None:
            await self._consumer

        captured = len(self.steps)
        steps = [s for s in self.steps if not self._is_excluded(s.action, s.selector)]
        if self.options.auto_selectors:
            steps = await self._upgrade_selectors(steps)
        steps, merged = merge_navigation_steps(steps)
        steps, duplicates = remove_duplicate_interactions(steps)
        self.steps = steps

        self._log.info(
            "Stopped recording",
            name=self.name,
            captured_steps=captured,
            steps=len(steps),
            navigations_merged=merged,
            duplicates_removed=duplicates,
            events_recorded=self.events_recorded,
            events_filtered=self.events_filtered,
        )

        return JourneyDefinition(
            name=self.name,
            description=self.options.description or f"Recorded journey: {self.name}",
            steps=[s.model_copy() for s in steps],
            created=self.start_time,
            modified=datetime.now(UTC),
            source=JourneySource.RECORDED,
            recorded_from=self.current_url,
        )

    def status(self) -> RecordingStatus:
        return RecordingStatus(
            session_id=self.id,
            name=self.name,
            state=self.state,
            current_url=self.current_url,
            steps_recorded=len(self.steps),
            recording_duration=int(self._clock() - self._started_at),
            events_recorded=self.events_recorded,
            events_filtered=self.events_filtered,
        )

    # Host callbacks: called by the driver, must not block.

    def _on_click(self, *args: Any) -> None:
        if not self.is_recording:
            return
        payload = _payload(args)
        self._inbox.put(CapturedEvent(
            kind=EventKind.CLICK,
            timestamp=self._clock(),
            element=ElementInfo.from_payload(payload.get("element")),
        ))

    def _on_input(self, *args: Any) -> None:
        if not self.is_recording:
            return
        payload = _payload(args)
        element = ElementInfo.from_payload(payload.get("element"))
        if element.input_type == "password":
            return
        value = payload.get("value")
        self._inbox.put(CapturedEvent(
            kind=EventKind.INPUT,
            timestamp=self._clock(),
            element=element,
            value="" if value is None else str(value),
        ))

    def _on_navigation(self, url: str) -> None:
        if not self.is_recording:
            return
        self._inbox.put(CapturedEvent(
            kind=EventKind.NAVIGATION,
            timestamp=self._clock(),
            url=url,
        ))

    # Consumer side

    async def _consume(self) -> None:
        async for event in self._inbox.drain():
            try:
                await self._record(event)
            except Exception as e:
                self._log.error("Failed to record event", kind=event.kind, error=str(e))

    async def _record(self, event: CapturedEvent) -> None:
        max_time = self.options.max_recording_time
        if max_time is not None and event.timestamp - self._started_at > max_time:
            self._drop(event, "max recording time exceeded")
            return

        match event.kind:
            case EventKind.NAVIGATION:
                url = event.url or ""
                if self._is_excluded(StepAction.NAVIGATE, None):
                    self._drop(event, "excluded")
                    return
                await self._append(event, JourneyStep(
                    id=self._next_step_id(),
                    action=StepAction.NAVIGATE,
                    value=url,
                    description=f"Navigate to {url}",
                ))
                self.current_url = url

            case EventKind.CLICK:
                element = event.element or ElementInfo(tag_name="*")
                selector = await generate_selector(self._driver, element)
                if self._debounced(event):
                    self._drop(event, "debounced")
                    return
                if self._is_excluded(StepAction.CLICK, selector):
                    self._drop(event, "excluded")
                    return
                await self._append(event, JourneyStep(
                    id=self._next_step_id(),
                    action=StepAction.CLICK,
                    selector=selector,
                    description=describe_click(element),
                ))

            case EventKind.INPUT:
                element = event.element or ElementInfo(tag_name="input")
                selector = await generate_selector(self._driver, element)
                previous = self.steps[-1] if self.steps else None
                if (
                    previous is not None
                    and previous.action == StepAction.TYPE
                    and previous.selector == selector
                ):
                    previous.value = event.value
                    self.events_recorded += 1
                    self._last_recorded_at = event.timestamp
                    return
                if self._debounced(event):
                    self._drop(event, "debounced")
                    return
                if self._is_excluded(StepAction.TYPE, selector):
                    self._drop(event, "excluded")
                    return
                await self._append(event, JourneyStep(
                    id=self._next_step_id(),
                    action=StepAction.TYPE,
                    selector=selector,
                    value=event.value,
                    description=describe_input(element),
                ))

    async def _append(self, event: CapturedEvent, step: JourneyStep) -> None:
        self.steps.append(step)
        self.events_recorded += 1
        self._last_recorded_at = event.timestamp
        self._log.debug("Recorded step", step=step.id, action=step.action, selector=step.selector)

        if self.options.screenshot_on_step and self._sink is not None:
            try:
                data = await self._driver.screenshot()
                self.screenshots.append(self._sink.store(f"{self.id}_{step.id}", data))
            except Exception as e:
                self._log.warning("Failed to capture step screenshot", step=step.id, error=str(e))

    def _drop(self, event: CapturedEvent, reason: str) -> None:
        self.events_filtered += 1
        self._log.debug("Dropped event", kind=event.kind, reason=reason)

    def _debounced(self, event: CapturedEvent) -> bool:
        delay = self.options.filter.min_interaction_delay
        if not delay or self._last_recorded_at is None:
            return False
        return event.timestamp - self._last_recorded_at < delay

    def _is_excluded(self, action: str, selector: str | None) -> bool:
        rules = self.options.filter
        if action in rules.exclude_actions:
            return True
        if not selector:
            return False
        for pattern in rules.exclude_selectors:
            if pattern in selector:
                return True
            try:
                if re.search(pattern, selector):
                    return True
            except re.error:
                continue
        return False

    def _next_step_id(self) -> str:
        self._step_counter += 1
        return f"step_{self._step_counter}"

    def _ensure_live(self, operation: str) -> None:
        if not self.is_live:
            raise SessionStateError(
                f"Cannot {operation} recording session {self.id} in state {self.state}",
                session_id=self.id,
            )

    async def _upgrade_selectors(self, steps: list[JourneyStep]) -> list[JourneyStep]:
        upgraded: list[JourneyStep] = []
        for step in steps:
            if step.selector:
                try:
                    handle = await self._driver.locate(
                        SelectorStrategy.parse(step.selector).to_selector()
                    )
                    candidates = await suggest_selectors(self._driver, handle) if handle else []
                except Exception as e:
                    self._log.debug("Selector upgrade failed", step=step.id, error=str(e))
                    candidates = []
                if candidates and candidates[0].selector != step.selector:
                    self._log.debug(
                        "Upgraded selector",
                        step=step.id,
                        old=step.selector,
                        new=candidates[0].selector,
                        reliability=candidates[0].reliability,
                    )
                    step = step.model_copy(update={"selector": candidates[0].selector})
            upgraded.append(step)
        return upgraded

    async def _detach(self) -> None:
        """Remove every listener this session registered. Failures are logged."""
        for name in (CLICK_FUNCTION, INPUT_FUNCTION):
            try:
                await self._driver.remove_host_function(name)
            except Exception as e:
                self._log.warning("Failed to remove host function", function=name, error=str(e))
        try:
            self._driver.off_navigation(self._on_navigation)
        except Exception as e:
            self._log.warning("Failed to remove navigation listener", error=str(e))
        try:
            await self._driver.evaluate(TEARDOWN_SCRIPT)
        except Exception as e:
            self._log.warning("Failed to remove page listeners", error=str(e))
