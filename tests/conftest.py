"""Pytest fixtures for journeyqa tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from journeyqa.recording.events import LISTENER_SCRIPT, TEARDOWN_SCRIPT
from journeyqa.recording.selectors import (
    COUNT_MATCHES_SCRIPT,
    ELEMENT_PROPERTIES_SCRIPT,
    XPATH_SCRIPT,
)


@dataclass
class FakeElement:
    """An element in the fake page."""

    selector: str
    visible: bool = True
    enabled: bool = True
    detached: bool = False
    text: str = ""
    properties: dict[str, Any] = field(default_factory=dict)
    xpath: str = ""
    # visible/enabled flip to True after this many checks
    ready_after: int = 0
    checks: int = 0


class FakeDriver:
    """
    In-memory implementation of the BrowserDriver protocol.

    Elements live in a table keyed by the driver-native selector string.
    Every driver action can be slowed down with ``action_delay`` (seconds).
    """

    def __init__(self, url: str = "https://example.com/") -> None:
        self.url = url
        self.elements: dict[str, FakeElement] = {}
        self.match_counts: dict[str, int] = {}
        self.conditions: dict[str, Any] = {}
        self.host_functions: dict[str, Callable[..., Any]] = {}
        self.navigation_callbacks: list[Callable[[str], Any]] = []
        self.calls: list[tuple[str, Any]] = []
        self.action_delay = 0.0
        self.locate_misses: dict[str, int] = {}
        self.click_failures: dict[str, int] = {}
        self.evaluate_error: Exception | None = None

    def add_element(self, selector: str, **kwargs: Any) -> FakeElement:
        element = FakeElement(selector=selector, **kwargs)
        self.elements[selector] = element
        return element

    async def _delay(self) -> None:
        if self.action_delay:
            await asyncio.sleep(self.action_delay)

    async def navigate(self, url: str) -> None:
        await self._delay()
        self.calls.append(("navigate", url))
        self.url = url

    async def locate(self, selector: str) -> FakeElement | None:
        self.calls.append(("locate", selector))
        misses = self.locate_misses.get(selector, 0)
        if misses > 0:
            self.locate_misses[selector] = misses - 1
            return None
        return self.elements.get(selector)

    async def click(self, handle: FakeElement) -> None:
        await self._delay()
        if handle.detached:
            raise RuntimeError(f"Element is detached from the DOM: {handle.selector}")
        failures = self.click_failures.get(handle.selector, 0)
        if failures > 0:
            self.click_failures[handle.selector] = failures - 1
            raise RuntimeError(f"Element is not clickable: {handle.selector}")
        self.calls.append(("click", handle.selector))

    async def type(self, handle: FakeElement, text: str) -> None:
        await self._delay()
        self.calls.append(("type", (handle.selector, text)))

    async def get_text(self, handle: FakeElement) -> str:
        return handle.text

    async def is_visible(self, handle: FakeElement) -> bool:
        handle.checks += 1
        return handle.visible or handle.checks > handle.ready_after > 0

    async def is_enabled(self, handle: FakeElement) -> bool:
        return handle.enabled

    async def evaluate(self, script: str, *args: Any) -> Any:
        self.calls.append(("evaluate", script))
        if self.evaluate_error is not None:
            raise self.evaluate_error
        if script == COUNT_MATCHES_SCRIPT:
            selector = args[0]
            if selector in self.match_counts:
                return self.match_counts[selector]
            return 1 if selector in self.elements else 0
        if script == ELEMENT_PROPERTIES_SCRIPT:
            return dict(args[0].properties)
        if script == XPATH_SCRIPT:
            return args[0].xpath
        if script in (LISTENER_SCRIPT, TEARDOWN_SCRIPT):
            return True
        value = self.conditions.get(script)
        if callable(value):
            return value()
        return value

    async def expose_host_function(self, name: str, callback: Callable[..., Any]) -> None:
        self.host_functions[name] = callback

    async def remove_host_function(self, name: str) -> None:
        self.host_functions.pop(name, None)

    def on_navigation(self, callback: Callable[[str], Any]) -> None:
        self.navigation_callbacks.append(callback)

    def off_navigation(self, callback: Callable[[str], Any]) -> None:
        if callback in self.navigation_callbacks:
            self.navigation_callbacks.remove(callback)

    async def screenshot(self) -> bytes:
        await self._delay()
        return b"\x89PNG fake"

    async def wait_for_load_idle(self) -> None:
        return None

    async def current_url(self) -> str:
        return self.url

    # Helpers that play the browser side of recording

    def fire(self, function: str, payload: dict[str, Any]) -> None:
        self.host_functions[function](payload)

    def fire_navigation(self, url: str) -> None:
        self.url = url
        for callback in list(self.navigation_callbacks):
            callback(url)

    def actions(self, kind: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == kind]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def driver() -> FakeDriver:
    """A fake driver with an empty page."""
    return FakeDriver()


@pytest.fixture
def driver_factory() -> Callable[..., FakeDriver]:
    """Build extra fake drivers, e.g. for multi-session tests."""
    return FakeDriver


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def login_page(driver: FakeDriver) -> FakeDriver:
    """A fake login page with a username field and a submit button."""
    driver.add_element(
        "#user",
        properties={"tagName": "input", "id": "user", "name": "username", "type": "text"},
    )
    driver.add_element(
        "#password",
        properties={"tagName": "input", "id": "password", "type": "password"},
    )
    driver.add_element(
        "#submit",
        text="Sign in",
        properties={"tagName": "button", "id": "submit", "text": "Sign in"},
    )
    driver.add_element("body", properties={"tagName": "body"})
    return driver


@pytest.fixture
def sample_journey_dict() -> dict[str, Any]:
    """Sample login journey as it arrives over the tool boundary."""
    return {
        "name": "login",
        "description": "Log in with a known user",
        "steps": [
            {"id": "s1", "action": "navigate", "value": "/login", "description": "Open login"},
            {
                "id": "s2",
                "action": "type",
                "selector": "#user",
                "value": "alice",
                "description": "Enter username",
            },
            {
                "id": "s3",
                "action": "click",
                "selector": "#submit",
                "onError": "fail",
                "description": "Submit",
            },
        ],
    }
