"""
Step-rewriting passes over journey definitions.

The passes are shared with the recorder, which runs the navigation merge and
duplicate removal on captured steps when a session stops.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from journeyqa.models import (
    DEFAULT_STEP_TIMEOUT_MS,
    JourneyDefinition,
    JourneyStep,
    StepAction,
)

logger = structlog.get_logger(__name__)


@dataclass
class OptimizationReport:
    """What an optimize run changed."""

    original_steps: int
    optimized_steps: int
    timeouts_standardized: int = 0
    navigations_merged: int = 0
    duplicates_removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.timeouts_standardized or self.navigations_merged or self.duplicates_removed
        )


def standardize_timeouts(
    steps: list[JourneyStep],
    default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS,
) -> tuple[list[JourneyStep], int]:
    """Fill in the canonical timeout on steps that have none."""
    result: list[JourneyStep] = []
    changed = 0
    for step in steps:
        if step.timeout is None:
            step = step.model_copy(update={"timeout": default_timeout_ms})
            changed += 1
        result.append(step)
    return result, changed


def merge_navigation_steps(steps: list[JourneyStep]) -> tuple[list[JourneyStep], int]:
    """Collapse runs of consecutive navigate steps to the last one."""
    result: list[JourneyStep] = []
    merged = 0
    for step in steps:
        if (
            step.action == StepAction.NAVIGATE
            and result
            and result[-1].action == StepAction.NAVIGATE
        ):
            result[-1] = step
            merged += 1
        else:
            result.append(step)
    return result, merged


def _is_duplicate(previous: JourneyStep, current: JourneyStep) -> bool:
    return (
        previous.action == current.action
        and previous.selector == current.selector
        and previous.condition == current.condition
        and not previous.value
        and not current.value
    )


def remove_duplicate_interactions(steps: list[JourneyStep]) -> tuple[list[JourneyStep], int]:
    """Drop steps identical to their predecessor, unless they carry a value."""
    result: list[JourneyStep] = []
    removed = 0
    for step in steps:
        if result and _is_duplicate(result[-1], step):
            removed += 1
            continue
        result.append(step)
    return result, removed


def optimize_with_report(
    definition: JourneyDefinition,
    default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS,
) -> tuple[JourneyDefinition, OptimizationReport]:
    """Run all passes and report what changed. The input is not mutated."""
    steps, standardized = standardize_timeouts(list(definition.steps), default_timeout_ms)
    steps, merged = merge_navigation_steps(steps)
    steps, removed = remove_duplicate_interactions(steps)

    report = OptimizationReport(
        original_steps=len(definition.steps),
        optimized_steps=len(steps),
        timeouts_standardized=standardized,
        navigations_merged=merged,
        duplicates_removed=removed,
    )

    update: dict[str, object] = {"steps": [s.model_copy() for s in steps]}
    if report.changed:
        update["modified"] = datetime.now(UTC)
    optimized = definition.model_copy(update=update, deep=True)

    logger.debug(
        "Optimized journey",
        journey=definition.name,
        original_steps=report.original_steps,
        optimized_steps=report.optimized_steps,
        timeouts_standardized=standardized,
        navigations_merged=merged,
        duplicates_removed=removed,
    )
    return optimized, report


def optimize(
    definition: JourneyDefinition,
    default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS,
) -> JourneyDefinition:
    """Return an optimized copy of the definition. Idempotent."""
    optimized, _ = optimize_with_report(definition, default_timeout_ms)
    return optimized
