"""
Exception taxonomy for the journey engine.

Step-level failures (resolution, action, assertion) are recoverable and go
through a step's ``on_error`` policy. Everything else is terminal for the
call that raised it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from journeyqa.models import ValidationResult


class JourneyError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, step_id: str | None = None) -> None:
        super().__init__(message)
        self.step_id = step_id


class StepFailure(JourneyError):
    """A step failed in a way the step's on_error policy may recover from."""

    kind: str = "action"


class ResolutionError(StepFailure):
    """Raised when no selector strategy matched within timeout and retries."""

    kind = "resolution"


class ActionError(StepFailure):
    """Raised when a driver call fails after the element was resolved."""

    kind = "action"


class StepAssertionError(StepFailure):
    """Raised when an assert step's condition evaluates falsy."""

    kind = "assertion"


class JourneyTimeoutError(JourneyError):
    """Raised when a journey exceeds its max_duration budget."""

    kind = "timeout"


class JourneyValidationError(JourneyError):
    """Raised when a journey definition fails static validation."""

    def __init__(self, result: ValidationResult) -> None:
        super().__init__("Journey definition is invalid: " + "; ".join(result.errors))
        self.result = result


class SessionStateError(JourneyError):
    """Raised for illegal recording session transitions or unknown session ids."""

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class JourneySourceError(JourneyError):
    """Raised when a journey reference cannot be loaded or parsed."""
