"""
Interaction recording.

Captures live clicks, typing and navigation from a driver into a replayable
journey definition, with selector suggestions ranked by reliability.
"""

from journeyqa.recording.events import CapturedEvent, ElementInfo, EventInbox, EventKind
from journeyqa.recording.manager import SessionManager
from journeyqa.recording.selectors import (
    describe_click,
    describe_input,
    generate_selector,
    suggest_selectors,
)
from journeyqa.recording.session import RecordingSession

__all__ = [
    "CapturedEvent",
    "ElementInfo",
    "EventInbox",
    "EventKind",
    "RecordingSession",
    "SessionManager",
    "describe_click",
    "describe_input",
    "generate_selector",
    "suggest_selectors",
]
