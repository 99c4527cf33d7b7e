"""
Load journey definitions and normalize journey sources.

Callers may hand the service a definition, a raw dict, or a reference to a
JSON file. ``to_source`` turns any of those into one of two explicit
variants, ``InlineJourney`` or ``JourneyReference``, and ``resolve_source``
produces the definition.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from journeyqa.errors import JourneySourceError
from journeyqa.models import JourneyDefinition

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InlineJourney:
    """A journey definition passed by value."""

    definition: JourneyDefinition


@dataclass(frozen=True)
class JourneyReference:
    """A journey stored as JSON, by file path or by name under the journeys directory."""

    ref: str


JourneySourceVariant = InlineJourney | JourneyReference


def parse_journey(data: dict[str, Any]) -> JourneyDefinition:
    """Parse a journey dict (camelCase or snake_case keys)."""
    if not isinstance(data, dict):
        raise JourneySourceError("Journey JSON must be an object")
    if "name" not in data:
        raise JourneySourceError("Journey JSON must contain a 'name'")
    if not isinstance(data.get("steps", []), list):
        raise JourneySourceError("Journey JSON 'steps' must be an array")
    try:
        return JourneyDefinition.model_validate(data)
    except ValidationError as e:
        raise JourneySourceError(f"Invalid journey definition: {e}") from e


def load_journey(path: str | Path) -> JourneyDefinition:
    """Load a journey from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise JourneySourceError(f"Journey file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise JourneySourceError(f"Journey file {path} is not valid JSON: {e}") from e

    journey = parse_journey(data)
    logger.debug("Loaded journey", path=str(path), journey=journey.name, steps=len(journey.steps))
    return journey


def save_journey(definition: JourneyDefinition, path: str | Path) -> Path:
    """Write a journey as JSON, e.g. after recording."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(definition.to_dict(), f, indent=2)
    return path


def to_source(value: JourneySourceVariant | JourneyDefinition | dict[str, Any] | str | Path) -> JourneySourceVariant:
    """Normalize a caller-supplied journey into an explicit source variant."""
    match value:
        case InlineJourney() | JourneyReference():
            return value
        case JourneyDefinition():
            return InlineJourney(value)
        case dict():
            return InlineJourney(parse_journey(value))
        case str() | Path():
            return JourneyReference(str(value))
    raise JourneySourceError(f"Unsupported journey source: {type(value).__name__}")


def resolve_source(source: JourneySourceVariant, journeys_dir: str | Path = "journeys") -> JourneyDefinition:
    """Produce the definition for a source, loading references from disk."""
    match source:
        case InlineJourney(definition=definition):
            return definition
        case JourneyReference(ref=ref):
            candidates = [Path(ref), Path(journeys_dir) / ref, Path(journeys_dir) / f"{ref}.json"]
            for candidate in candidates:
                if candidate.is_file():
                    return load_journey(candidate)
            raise JourneySourceError(f"Journey reference {ref!r} not found in {journeys_dir}")
    raise JourneySourceError(f"Unsupported journey source: {type(source).__name__}")
