"""
Tests for recording sessions.

Browser events are played through the fake driver's exposed host functions
and navigation callbacks; the fake clock controls debounce and time limits.
"""

from __future__ import annotations

from typing import Any

import pytest

from journeyqa.driver import MemoryArtifactSink
from journeyqa.errors import SessionStateError
from journeyqa.executor import JourneyExecutor
from journeyqa.models import (
    JourneySource,
    RecordingFilter,
    RecordingOptions,
    RecordingState,
    StepAction,
)
from journeyqa.recording.events import CLICK_FUNCTION, INPUT_FUNCTION
from journeyqa.recording.session import RecordingSession


def click_payload(**element: Any) -> dict[str, Any]:
    return {"element": {"tagName": "button", **element}}


def input_payload(value: str, **element: Any) -> dict[str, Any]:
    return {"element": {"tagName": "input", "type": "text", **element}, "value": value}


async def start_session(driver, clock, **options: Any) -> RecordingSession:
    session = RecordingSession(
        driver, RecordingOptions(name="test", **options), clock=clock
    )
    await session.start()
    return session


class TestLifecycle:
    """Test state transitions and listener registration."""

    async def test_start_registers_listeners(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        assert session.state == RecordingState.RECORDING
        assert session.id.startswith("rec_")
        assert session.current_url == "https://example.com/"
        assert set(driver.host_functions) == {CLICK_FUNCTION, INPUT_FUNCTION}
        assert len(driver.navigation_callbacks) == 1

        await session.stop()

    async def test_stop_removes_listeners(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        journey = await session.stop()

        assert session.state == RecordingState.STOPPED
        assert driver.host_functions == {}
        assert driver.navigation_callbacks == []
        assert journey.source == JourneySource.RECORDED
        assert journey.recorded_from == "https://example.com/"
        assert journey.description == "Recorded journey: test"
        assert journey.created == session.start_time

    async def test_stop_twice_raises(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        await session.stop()

        with pytest.raises(SessionStateError):
            await session.stop()

    async def test_start_twice_raises(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        with pytest.raises(SessionStateError):
            await session.start()
        await session.stop()

    async def test_pause_and_resume_are_idempotent(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        session.pause()
        session.pause()
        assert session.state == RecordingState.PAUSED
        session.resume()
        session.resume()
        assert session.state == RecordingState.RECORDING

        await session.stop()
        with pytest.raises(SessionStateError):
            session.pause()
        with pytest.raises(SessionStateError):
            session.resume()

    async def test_start_failure_detaches(self, driver, clock) -> None:
        driver.evaluate_error = RuntimeError("page closed")
        session = RecordingSession(driver, RecordingOptions(name="x"), clock=clock)

        with pytest.raises(RuntimeError):
            await session.start()

        assert session.state == RecordingState.CREATED
        assert driver.host_functions == {}
        assert driver.navigation_callbacks == []

    async def test_status(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        driver.fire(CLICK_FUNCTION, click_payload(id="go"))
        await session.flush()
        clock.advance(1500)

        status = session.status()

        assert status.session_id == session.id
        assert status.is_recording
        assert status.steps_recorded == 1
        assert status.events_recorded == 1
        assert status.recording_duration == 1500
        await session.stop()


class TestCapture:
    """Test turning events into steps."""

    async def test_records_clicks_and_navigation(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        driver.fire_navigation("https://example.com/products")
        driver.fire(CLICK_FUNCTION, click_payload(id="add", text="Add to cart"))
        await session.flush()

        assert [s.action for s in session.steps] == [StepAction.NAVIGATE, StepAction.CLICK]
        assert [s.id for s in session.steps] == ["step_1", "step_2"]
        assert session.steps[0].value == "https://example.com/products"
        assert session.steps[1].selector == "#add"
        assert session.steps[1].description == 'Click button "Add to cart"'
        assert session.current_url == "https://example.com/products"
        await session.stop()

    async def test_host_callback_with_leading_source_argument(self, driver, clock) -> None:
        """Some drivers pass a binding source before the payload."""
        session = await start_session(driver, clock)

        driver.host_functions[CLICK_FUNCTION]({"frame": "main"}, click_payload(id="ok"))
        await session.flush()

        assert session.steps[0].selector == "#ok"
        await session.stop()

    async def test_password_input_never_recorded(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        driver.fire(INPUT_FUNCTION, input_payload("hunter2", id="pw", type="password"))
        await session.flush()

        assert session.steps == []
        await session.stop()

    async def test_events_dropped_while_paused(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        session.pause()

        driver.fire(CLICK_FUNCTION, click_payload(id="a"))
        driver.fire_navigation("https://example.com/elsewhere")
        await session.flush()
        assert session.steps == []

        session.resume()
        driver.fire(CLICK_FUNCTION, click_payload(id="b"))
        await session.flush()
        assert [s.selector for s in session.steps] == ["#b"]
        await session.stop()

    async def test_events_after_stop_ignored(self, driver, clock) -> None:
        session = await start_session(driver, clock)
        callback = driver.host_functions[CLICK_FUNCTION]
        journey = await session.stop()

        callback(click_payload(id="late"))

        assert journey.steps == []
        assert session.steps == []

    async def test_screenshot_on_step(self, driver, clock) -> None:
        sink = MemoryArtifactSink()
        session = RecordingSession(
            driver, RecordingOptions(name="shots", screenshot_on_step=True), sink=sink, clock=clock
        )
        await session.start()

        driver.fire(CLICK_FUNCTION, click_payload(id="a"))
        await session.flush()

        assert session.screenshots == [f"{session.id}_step_1"]
        assert session.screenshots[0] in sink
        await session.stop()


class TestFiltering:
    """Test debounce, input coalescing, exclusions and the time limit."""

    async def test_input_coalesces_to_final_value(self, driver, clock) -> None:
        """Keystrokes on one field collapse into one type step, even inside the debounce window."""
        session = await start_session(
            driver, clock, filter=RecordingFilter(min_interaction_delay=500)
        )

        for value in ["a", "al", "ali", "alic", "alice"]:
            driver.fire(INPUT_FUNCTION, input_payload(value, id="user"))
            clock.advance(50)
        await session.flush()

        type_steps = [s for s in session.steps if s.action == StepAction.TYPE]
        assert len(type_steps) == 1
        assert type_steps[0].selector == "#user"
        assert type_steps[0].value == "alice"
        assert session.events_filtered == 0
        await session.stop()

    async def test_debounce_drops_fast_clicks(self, driver, clock) -> None:
        session = await start_session(
            driver, clock, filter=RecordingFilter(min_interaction_delay=300)
        )

        driver.fire(CLICK_FUNCTION, click_payload(id="a"))
        clock.advance(100)
        driver.fire(CLICK_FUNCTION, click_payload(id="b"))
        clock.advance(400)
        driver.fire(CLICK_FUNCTION, click_payload(id="c"))
        await session.flush()

        assert [s.selector for s in session.steps] == ["#a", "#c"]
        assert session.events_filtered == 1
        await session.stop()

    async def test_debounce_measured_from_last_keystroke(self, driver, clock) -> None:
        """A click 10ms after the final coalesced keystroke is dropped."""
        session = await start_session(
            driver, clock, filter=RecordingFilter(min_interaction_delay=300)
        )

        driver.fire(INPUT_FUNCTION, input_payload("a", id="user"))
        clock.advance(200)
        driver.fire(INPUT_FUNCTION, input_payload("al", id="user"))
        clock.advance(200)
        driver.fire(INPUT_FUNCTION, input_payload("ali", id="user"))
        clock.advance(10)
        driver.fire(CLICK_FUNCTION, click_payload(id="submit"))
        await session.flush()

        assert [(s.action, s.selector) for s in session.steps] == [(StepAction.TYPE, "#user")]
        assert session.steps[0].value == "ali"
        assert session.events_filtered == 1
        await session.stop()

    async def test_navigation_exempt_from_debounce(self, driver, clock) -> None:
        session = await start_session(
            driver, clock, filter=RecordingFilter(min_interaction_delay=1000)
        )

        driver.fire(CLICK_FUNCTION, click_payload(id="link"))
        driver.fire_navigation("https://example.com/next")
        await session.flush()

        assert [s.action for s in session.steps] == [StepAction.CLICK, StepAction.NAVIGATE]
        await session.stop()

    async def test_input_on_new_field_starts_new_step(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        driver.fire(INPUT_FUNCTION, input_payload("a", id="first"))
        driver.fire(INPUT_FUNCTION, input_payload("b", id="second"))
        driver.fire(INPUT_FUNCTION, input_payload("c", id="first"))
        await session.flush()

        assert [(s.selector, s.value) for s in session.steps] == [
            ("#first", "a"), ("#second", "b"), ("#first", "c"),
        ]
        await session.stop()

    async def test_exclude_selectors_and_actions(self, driver, clock) -> None:
        session = await start_session(
            driver,
            clock,
            filter=RecordingFilter(exclude_selectors=["cookie", r"^#ad-\d+$"], exclude_actions=["navigate"]),
        )

        driver.fire(CLICK_FUNCTION, click_payload(id="cookie-accept"))
        driver.fire(CLICK_FUNCTION, click_payload(id="ad-42"))
        driver.fire_navigation("https://example.com/x")
        driver.fire(CLICK_FUNCTION, click_payload(id="buy"))
        await session.flush()

        assert [s.selector for s in session.steps] == ["#buy"]
        assert session.events_filtered == 3
        await session.stop()

    async def test_max_recording_time(self, driver, clock) -> None:
        session = await start_session(driver, clock, max_recording_time=1000)

        driver.fire(CLICK_FUNCTION, click_payload(id="early"))
        clock.advance(1500)
        driver.fire(CLICK_FUNCTION, click_payload(id="late"))
        await session.flush()

        assert [s.selector for s in session.steps] == ["#early"]
        assert session.events_filtered == 1
        await session.stop()


class TestStopProcessing:
    """Test post-processing when a session stops."""

    async def test_merges_navigation_and_removes_duplicates(self, driver, clock) -> None:
        session = await start_session(driver, clock)

        driver.fire_navigation("https://example.com/a")
        driver.fire_navigation("https://example.com/b")
        driver.fire(CLICK_FUNCTION, click_payload(id="x"))
        driver.fire(CLICK_FUNCTION, click_payload(id="x"))
        journey = await session.stop()

        assert [(s.action, s.value or s.selector) for s in journey.steps] == [
            (StepAction.NAVIGATE, "https://example.com/b"),
            (StepAction.CLICK, "#x"),
        ]
        assert journey.recorded_from == "https://example.com/b"

    async def test_auto_selectors_upgrade(self, driver, clock) -> None:
        """With autoSelectors the top suggestion replaces the captured selector."""
        driver.match_counts["button.buy"] = 1
        driver.add_element(
            "button.buy",
            properties={"tagName": "button", "className": "buy", "name": "purchase"},
        )
        session = await start_session(driver, clock, auto_selectors=True)

        driver.fire(CLICK_FUNCTION, click_payload(className="buy"))
        journey = await session.stop()

        assert journey.steps[0].selector == '[name="purchase"]'

    async def test_recorded_journey_replays(self, login_page, clock) -> None:
        """Record a login, then run the recorded journey against the same page."""
        session = await start_session(login_page, clock)

        login_page.fire_navigation("https://example.com/login")
        login_page.fire(INPUT_FUNCTION, input_payload("a", id="user", name="username"))
        login_page.fire(INPUT_FUNCTION, input_payload("alice", id="user", name="username"))
        login_page.fire(INPUT_FUNCTION, input_payload("secret", id="password", type="password"))
        login_page.fire(CLICK_FUNCTION, click_payload(id="submit", text="Sign in"))
        journey = await session.stop()

        assert [s.action for s in journey.steps] == [
            StepAction.NAVIGATE, StepAction.TYPE, StepAction.CLICK,
        ]

        result = await JourneyExecutor(login_page).run(journey)

        assert result.success is True
        assert result.completed_steps == 3
        assert login_page.actions("type") == [("#user", "alice")]
        assert login_page.actions("click") == ["#submit"]
