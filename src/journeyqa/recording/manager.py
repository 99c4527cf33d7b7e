"""
Session manager: the registry of live recording sessions.

Replaces a process-wide map with an object the service owns and injects.
Mutations happen under an asyncio lock so concurrent tool calls cannot race
a start against another start, or a stop against a pause.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from journeyqa.errors import SessionStateError
from journeyqa.models import JourneyDefinition, RecordingOptions, RecordingStatus
from journeyqa.recording.session import RecordingSession

if TYPE_CHECKING:
    from journeyqa.driver import ArtifactSink, BrowserDriver

logger = structlog.get_logger(__name__)


class SessionManager:
    """Owns recording sessions keyed by session id."""

    def __init__(self, sink: ArtifactSink | None = None) -> None:
        self._sessions: dict[str, RecordingSession] = {}
        self._current_id: str | None = None
        self._sink = sink
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="session_manager")

    @property
    def current_session_id(self) -> str | None:
        return self._current_id

    def active_session_ids(self) -> list[str]:
        return list(self._sessions)

    def get(self, session_id: str) -> RecordingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionStateError(
                f"Recording session {session_id} not found", session_id=session_id
            )
        return session

    async def start_recording(
        self,
        driver: BrowserDriver,
        options: RecordingOptions,
    ) -> RecordingSession:
        """
        Start a session on a driver.

        Raises:
            SessionStateError: If another live session already holds the driver
        """
        async with self._lock:
            for existing in self._sessions.values():
                if existing.driver is driver and existing.is_live:
                    raise SessionStateError(
                        f"Recording session {existing.id} is already active on this driver. "
                        "Stop current recording first.",
                        session_id=existing.id,
                    )

            session = RecordingSession(driver, options, sink=self._sink)
            await session.start()
            self._sessions[session.id] = session
            self._current_id = session.id

        self._log.info("Registered recording session", session_id=session.id, name=options.name)
        return session

    async def stop_recording(self, session_id: str) -> JourneyDefinition:
        """Stop a session, remove it from the registry and return its journey."""
        async with self._lock:
            session = self.get(session_id)
            try:
                journey = await session.stop()
            finally:
                del self._sessions[session_id]
                if self._current_id == session_id:
                    self._current_id = next(reversed(self._sessions), None)

        self._log.info("Removed recording session", session_id=session_id, steps=len(journey.steps))
        return journey

    async def pause_recording(self, session_id: str) -> RecordingStatus:
        async with self._lock:
            session = self.get(session_id)
            session.pause()
            return session.status()

    async def resume_recording(self, session_id: str) -> RecordingStatus:
        async with self._lock:
            session = self.get(session_id)
            session.resume()
            return session.status()

    def get_status(self, session_id: str | None = None) -> RecordingStatus | None:
        """Status of the given session, or of the current one when no id is given."""
        if session_id is None:
            if self._current_id is None:
                return None
            session_id = self._current_id
        return self.get(session_id).status()

    async def stop_all(self) -> list[JourneyDefinition]:
        """Stop every live session, e.g. when the driver is shutting down."""
        journeys: list[JourneyDefinition] = []
        for session_id in list(self._sessions):
            try:
                journeys.append(await self.stop_recording(session_id))
            except SessionStateError as e:
                self._log.warning("Session vanished during shutdown", session_id=session_id, error=str(e))
        return journeys
