"""
Data model for journeys, selector strategies, results and recording.

Journey definitions are Pydantic models so they can be parsed from the JSON
that crosses the tool boundary (camelCase aliases are accepted alongside the
Python field names). Only types and enum membership are enforced here; the
action-specific required fields are reported by ``journeyqa.validator``.

Results are plain dataclasses produced once per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_STEP_TIMEOUT_MS = 10000


class StepAction(StrEnum):
    """Actions a journey step can perform."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    ASSERT = "assert"
    SCREENSHOT = "screenshot"


class ErrorPolicy(StrEnum):
    """What the executor does when a step fails."""

    CONTINUE = "continue"
    RETRY = "retry"
    FAIL = "fail"


class JourneySource(StrEnum):
    """Where a journey definition came from."""

    MANUAL = "manual"
    RECORDED = "recorded"


class SelectorType(StrEnum):
    """Selector strategy types understood by the resolver."""

    CSS = "css"
    XPATH = "xpath"
    TEXT = "text"
    ARIA = "aria"
    DATA = "data"


class ErrorKind(StrEnum):
    """Category of a recorded step error."""

    RESOLUTION = "resolution"
    ACTION = "action"
    ASSERTION = "assertion"
    TIMEOUT = "timeout"


class RecordingState(StrEnum):
    """Lifecycle state of a recording session."""

    CREATED = "created"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class JourneyStep(_CamelModel):
    """One action in a journey."""

    id: str = ""
    action: StepAction
    selector: str | None = None
    value: str | None = None
    condition: str | None = None
    timeout: int | None = Field(default=None, ge=0)
    retry_count: int = Field(default=0, ge=0)
    on_error: ErrorPolicy = ErrorPolicy.FAIL
    description: str | None = None

    @property
    def effective_timeout(self) -> int:
        """Timeout in ms, falling back to the canonical default."""
        return self.timeout if self.timeout is not None else DEFAULT_STEP_TIMEOUT_MS


class JourneyDefinition(_CamelModel):
    """A named, ordered sequence of steps."""

    name: str
    description: str | None = None
    steps: list[JourneyStep] = Field(default_factory=list)
    created: datetime = Field(default_factory=_utcnow)
    modified: datetime = Field(default_factory=_utcnow)
    source: JourneySource = JourneySource.MANUAL
    recorded_from: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys for the tool boundary."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RecordingFilter(_CamelModel):
    """Capture-time filter rules for a recording session."""

    exclude_selectors: list[str] = Field(default_factory=list)
    exclude_actions: list[str] = Field(default_factory=list)
    min_interaction_delay: int = Field(default=0, ge=0)


class RecordingOptions(_CamelModel):
    """Options passed to ``start_recording``."""

    name: str
    description: str | None = None
    filter: RecordingFilter = Field(default_factory=RecordingFilter)
    auto_selectors: bool = False
    max_recording_time: int | None = Field(default=None, gt=0)
    screenshot_on_step: bool = False


@dataclass
class SelectorStrategy:
    """A typed selector rule with a priority (lower is tried first)."""

    type: SelectorType
    value: str
    priority: int = 0

    def to_selector(self) -> str:
        """Render the driver-native selector string for this strategy."""
        match self.type:
            case SelectorType.CSS:
                return self.value
            case SelectorType.XPATH:
                return f"xpath={self.value}"
            case SelectorType.TEXT:
                return f"text={self.value}"
            case SelectorType.ARIA:
                return f'[aria-label="{self.value}"]'
            case SelectorType.DATA:
                return f'[data-testid="{self.value}"]'

    @classmethod
    def parse(cls, selector: str, priority: int = 0) -> SelectorStrategy:
        """Turn a step selector string into a strategy."""
        if selector.startswith("xpath="):
            return cls(SelectorType.XPATH, selector[len("xpath="):], priority)
        if selector.startswith("//") or selector.startswith("(//"):
            return cls(SelectorType.XPATH, selector, priority)
        if selector.startswith("text="):
            return cls(SelectorType.TEXT, selector[len("text="):].strip('"'), priority)
        return cls(SelectorType.CSS, selector, priority)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectorStrategy:
        return cls(
            type=SelectorType(data["type"]),
            value=data["value"],
            priority=int(data.get("priority") or 0),
        )


@dataclass
class ResolveOptions:
    """Options for a single ``SelectorResolver.resolve`` call."""

    timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS
    wait_for_visible: bool = False
    wait_for_enabled: bool = False
    retry_count: int = 0
    poll_interval_ms: int = 100
    retry_delay_ms: int = 0


@dataclass
class SelectorCandidate:
    """A suggested selector with its heuristic reliability score."""

    selector: str
    type: SelectorType
    reliability: float
    element: str


@dataclass(frozen=True)
class StepError:
    """An error recorded against a step during a run."""

    step_id: str
    step_index: int
    kind: ErrorKind
    error: str
    timestamp: datetime = field(default_factory=_utcnow)
    screenshot: str | None = None


@dataclass(frozen=True)
class SlowestStep:
    step_id: str
    duration: int


@dataclass(frozen=True)
class PerformanceMetrics:
    """Timing summary over the steps that executed successfully."""

    total_time: int
    average_step_time: float
    slowest_step: SlowestStep


@dataclass(frozen=True)
class JourneyResult:
    """Outcome of one journey execution."""

    success: bool
    duration: int
    completed_steps: int
    total_steps: int
    journey_id: str
    screenshots: tuple[str, ...] = ()
    errors: tuple[StepError, ...] = ()
    performance_metrics: PerformanceMetrics | None = None


@dataclass
class ValidationResult:
    """Outcome of static journey validation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class RecordingStatus:
    """Snapshot of a recording session for status queries."""

    session_id: str
    name: str
    state: RecordingState
    current_url: str | None
    steps_recorded: int
    recording_duration: int
    events_recorded: int
    events_filtered: int

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def is_paused(self) -> bool:
        return self.state == RecordingState.PAUSED

    @property
    def can_pause(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def can_resume(self) -> bool:
        return self.state == RecordingState.PAUSED

    @property
    def can_stop(self) -> bool:
        return self.state in (RecordingState.RECORDING, RecordingState.PAUSED)
