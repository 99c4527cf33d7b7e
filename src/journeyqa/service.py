"""
Tool-call boundary for the journey engine.

``JourneyService`` is what an outer protocol layer (JSON-RPC tools, a test
harness) calls. It normalizes journey inputs, owns the session manager, and
wires the resolver, executor and recorder to one driver.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from journeyqa.config import EngineSettings
from journeyqa.driver import ArtifactSink, MemoryArtifactSink
from journeyqa.executor import JourneyExecutor, JourneyObserver, RunOptions
from journeyqa.loader import JourneySourceVariant, resolve_source, to_source
from journeyqa.models import (
    JourneyDefinition,
    JourneyResult,
    RecordingOptions,
    RecordingStatus,
    ResolveOptions,
    SelectorCandidate,
    SelectorStrategy,
    ValidationResult,
)
from journeyqa.optimizer import optimize
from journeyqa.recording.manager import SessionManager
from journeyqa.recording.selectors import suggest_selectors
from journeyqa.resolver import SelectorResolver
from journeyqa.validator import validate

if TYPE_CHECKING:
    from journeyqa.driver import BrowserDriver

logger = structlog.get_logger(__name__)

JourneyInput = JourneySourceVariant | JourneyDefinition | dict[str, Any] | str | Path


class JourneyService:
    """Entry points for running, recording, validating and optimizing journeys."""

    def __init__(
        self,
        driver: BrowserDriver,
        settings: EngineSettings | None = None,
        sink: ArtifactSink | None = None,
        sessions: SessionManager | None = None,
        observer: JourneyObserver | None = None,
    ) -> None:
        self._driver = driver
        self._settings = settings if settings is not None else EngineSettings()
        self._sink = sink if sink is not None else MemoryArtifactSink()
        self._sessions = sessions if sessions is not None else SessionManager(sink=self._sink)
        self._resolver = SelectorResolver(driver)
        self._executor = JourneyExecutor(
            driver,
            resolver=self._resolver,
            sink=self._sink,
            observer=observer,
            settings=self._settings,
        )
        self._log = logger.bind(component="journey_service")

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def sink(self) -> ArtifactSink:
        return self._sink

    def load(self, journey: JourneyInput) -> JourneyDefinition:
        """Normalize any accepted journey input into a definition."""
        return resolve_source(to_source(journey), self._settings.journeys_dir)

    async def run_journey(
        self,
        journey: JourneyInput,
        options: RunOptions | None = None,
    ) -> JourneyResult:
        definition = self.load(journey)
        self._log.info("run_journey", journey=definition.name, steps=len(definition.steps))
        return await self._executor.run(definition, options)

    async def start_recording(self, options: RecordingOptions | dict[str, Any]) -> dict[str, Any]:
        if isinstance(options, dict):
            options = RecordingOptions.model_validate(options)
        session = await self._sessions.start_recording(self._driver, options)
        return {"sessionId": session.id, "currentUrl": session.current_url}

    async def stop_recording(self, session_id: str) -> JourneyDefinition:
        return await self._sessions.stop_recording(session_id)

    async def pause_recording(self, session_id: str) -> RecordingStatus:
        return await self._sessions.pause_recording(session_id)

    async def resume_recording(self, session_id: str) -> RecordingStatus:
        return await self._sessions.resume_recording(session_id)

    def get_current_session(self, session_id: str | None = None) -> RecordingStatus | None:
        return self._sessions.get_status(session_id)

    def validate_journey(self, journey: JourneyInput) -> ValidationResult:
        return validate(self.load(journey))

    def optimize_journey(self, journey: JourneyInput) -> JourneyDefinition:
        return optimize(self.load(journey), self._settings.default_timeout_ms)

    async def suggest_selectors(
        self,
        strategies: list[SelectorStrategy | dict[str, Any]],
        options: ResolveOptions | None = None,
    ) -> list[SelectorCandidate]:
        """Resolve an element from strategies and rank alternative selectors for it."""
        parsed = [
            s if isinstance(s, SelectorStrategy) else SelectorStrategy.from_dict(s)
            for s in strategies
        ]
        handle = await self._resolver.resolve_or_raise(parsed, options)
        return await suggest_selectors(self._driver, handle)
