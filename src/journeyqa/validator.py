"""Static correctness checks over a journey definition (no driver calls)."""

from __future__ import annotations

from journeyqa.errors import JourneyValidationError
from journeyqa.models import (
    ErrorPolicy,
    JourneyDefinition,
    JourneyStep,
    StepAction,
    ValidationResult,
)

LONG_TIMEOUT_MS = 30000


def _required_field_errors(step: JourneyStep, label: str) -> list[str]:
    errors: list[str] = []
    match step.action:
        case StepAction.NAVIGATE:
            if not step.value:
                errors.append(f"{label}: navigate action requires a URL value")
        case StepAction.CLICK:
            if not step.selector:
                errors.append(f"{label}: click action requires a selector")
        case StepAction.TYPE:
            if not step.selector:
                errors.append(f"{label}: type action requires a selector")
            if step.value is None:
                errors.append(f"{label}: type action requires a value")
        case StepAction.WAIT:
            if not step.selector and not step.condition:
                errors.append(f"{label}: wait action requires a selector or a condition")
        case StepAction.ASSERT:
            if not step.condition:
                errors.append(f"{label}: assert action requires a condition")
    return errors


def validate(definition: JourneyDefinition) -> ValidationResult:
    """
    Check a journey for definition defects.

    Errors cover missing or duplicate step ids and missing action-required
    fields. Everything else (missing timeouts on wait/assert, retry settings
    that will never be used, cosmetic issues) is a warning.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not definition.name or not definition.name.strip():
        warnings.append("Journey name is empty")
    if not definition.steps:
        warnings.append("Journey has no steps")

    seen: set[str] = set()
    for index, step in enumerate(definition.steps):
        label = f"Step {step.id}" if step.id else f"Step #{index + 1}"

        if not step.id or not step.id.strip():
            errors.append(f"{label}: ID is required")
        elif step.id in seen:
            errors.append(f"{label}: duplicate step ID")
        else:
            seen.add(step.id)

        errors.extend(_required_field_errors(step, label))

        if step.action in (StepAction.WAIT, StepAction.ASSERT) and step.timeout is None:
            warnings.append(f"{label}: {step.action} step has no explicit timeout")
        if step.retry_count > 0 and step.on_error != ErrorPolicy.RETRY:
            warnings.append(
                f"{label}: retryCount={step.retry_count} has no effect unless onError is 'retry'"
            )
        if step.on_error == ErrorPolicy.RETRY and step.retry_count == 0:
            warnings.append(f"{label}: onError is 'retry' but retryCount is 0")
        if step.timeout is not None and step.timeout > LONG_TIMEOUT_MS:
            warnings.append(f"{label}: timeout of {step.timeout}ms is quite long")
        if not step.description:
            warnings.append(f"{label}: consider adding a description for clarity")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def ensure_valid(definition: JourneyDefinition) -> ValidationResult:
    """Validate and raise JourneyValidationError if the definition has errors."""
    result = validate(definition)
    if not result.is_valid:
        raise JourneyValidationError(result)
    return result
