"""
journeyqa: journey automation engine for end-to-end UI testing.

Resolves elements through ranked selector strategies, runs journeys under
per-step retry/error policies and a time budget, validates and optimizes
journey definitions, and records live interactions into replayable journeys.
"""

__version__ = "1.0.0"
__author__ = "Olib AI"

from journeyqa.config import EngineSettings, configure_logging
from journeyqa.driver import ArtifactSink, BrowserDriver, MemoryArtifactSink
from journeyqa.errors import (
    ActionError,
    JourneyError,
    JourneySourceError,
    JourneyTimeoutError,
    JourneyValidationError,
    ResolutionError,
    SessionStateError,
    StepAssertionError,
    StepFailure,
)
from journeyqa.executor import (
    JourneyExecutor,
    JourneyObserver,
    JourneyState,
    LoggingObserver,
    NullObserver,
    RunOptions,
    StepState,
)
from journeyqa.loader import InlineJourney, JourneyReference, load_journey, save_journey
from journeyqa.models import (
    ErrorKind,
    ErrorPolicy,
    JourneyDefinition,
    JourneyResult,
    JourneySource,
    JourneyStep,
    PerformanceMetrics,
    RecordingFilter,
    RecordingOptions,
    RecordingState,
    RecordingStatus,
    ResolveOptions,
    SelectorCandidate,
    SelectorStrategy,
    SelectorType,
    StepAction,
    StepError,
    ValidationResult,
)
from journeyqa.optimizer import OptimizationReport, optimize, optimize_with_report
from journeyqa.recording import RecordingSession, SessionManager, suggest_selectors
from journeyqa.resolver import SelectorResolver
from journeyqa.service import JourneyService
from journeyqa.validator import ensure_valid, validate

__all__ = [
    "ActionError",
    "ArtifactSink",
    "BrowserDriver",
    "EngineSettings",
    "ErrorKind",
    "ErrorPolicy",
    "InlineJourney",
    "JourneyDefinition",
    "JourneyError",
    "JourneyExecutor",
    "JourneyObserver",
    "JourneyReference",
    "JourneyResult",
    "JourneyService",
    "JourneySource",
    "JourneySourceError",
    "JourneyState",
    "JourneyStep",
    "JourneyTimeoutError",
    "JourneyValidationError",
    "LoggingObserver",
    "MemoryArtifactSink",
    "NullObserver",
    "OptimizationReport",
    "PerformanceMetrics",
    "RecordingFilter",
    "RecordingOptions",
    "RecordingSession",
    "RecordingState",
    "RecordingStatus",
    "ResolutionError",
    "ResolveOptions",
    "RunOptions",
    "SelectorCandidate",
    "SelectorResolver",
    "SelectorStrategy",
    "SelectorType",
    "SessionManager",
    "SessionStateError",
    "StepAction",
    "StepAssertionError",
    "StepError",
    "StepFailure",
    "StepState",
    "ValidationResult",
    "configure_logging",
    "ensure_valid",
    "load_journey",
    "optimize",
    "optimize_with_report",
    "save_journey",
    "suggest_selectors",
    "validate",
    "__version__",
]
