"""
Captured interaction events and the per-session inbox.

Browser-side listeners call exposed host functions with a JSON payload; the
host callbacks turn each payload into a ``CapturedEvent`` and push it into the
session's inbox without awaiting anything. A single consumer drains the inbox
in arrival order.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

CLICK_FUNCTION = "__journeyqa_click"
INPUT_FUNCTION = "__journeyqa_input"

# Installed with driver.evaluate() when recording starts. Listens in the
# capture phase so handlers that stop propagation do not hide events.
LISTENER_SCRIPT = """
() => {
  if (window.__journeyqaListeners) { return false; }
  const describe = (el) => ({
    tagName: (el.tagName || '').toLowerCase(),
    id: el.id || '',
    className: typeof el.className === 'string' ? el.className : '',
    text: (el.textContent || '').trim().substring(0, 50),
    type: el.getAttribute ? (el.getAttribute('type') || '') : '',
    placeholder: el.getAttribute ? (el.getAttribute('placeholder') || '') : '',
    ariaLabel: el.getAttribute ? (el.getAttribute('aria-label') || '') : '',
    role: el.getAttribute ? (el.getAttribute('role') || '') : '',
    name: el.getAttribute ? (el.getAttribute('name') || '') : '',
  });
  const onClick = (event) => {
    if (!event.target || !window.__journeyqa_click) { return; }
    window.__journeyqa_click({ element: describe(event.target) });
  };
  const onInput = (event) => {
    const el = event.target;
    if (!el || !window.__journeyqa_input) { return; }
    window.__journeyqa_input({ element: describe(el), value: el.value });
  };
  document.addEventListener('click', onClick, true);
  document.addEventListener('input', onInput, true);
  window.__journeyqaListeners = { onClick, onInput };
  return true;
}
"""

TEARDOWN_SCRIPT = """
() => {
  const listeners = window.__journeyqaListeners;
  if (!listeners) { return false; }
  document.removeEventListener('click', listeners.onClick, true);
  document.removeEventListener('input', listeners.onInput, true);
  delete window.__journeyqaListeners;
  return true;
}
"""


class EventKind(StrEnum):
    """Kinds of captured interaction events."""

    CLICK = "click"
    INPUT = "input"
    NAVIGATION = "navigation"


@dataclass(frozen=True)
class ElementInfo:
    """Browser-side description of an event target."""

    tag_name: str
    element_id: str = ""
    class_name: str = ""
    text: str = ""
    input_type: str = ""
    placeholder: str = ""
    aria_label: str = ""
    role: str = ""
    name: str = ""

    @property
    def classes(self) -> list[str]:
        return [c for c in self.class_name.split() if c]

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> ElementInfo:
        data = payload or {}

        def text(key: str) -> str:
            value = data.get(key)
            return str(value).strip() if value is not None else ""

        return cls(
            tag_name=text("tagName").lower() or "*",
            element_id=text("id"),
            class_name=text("className"),
            text=text("text"),
            input_type=text("type").lower(),
            placeholder=text("placeholder"),
            aria_label=text("ariaLabel"),
            role=text("role"),
            name=text("name"),
        )


@dataclass(frozen=True)
class CapturedEvent:
    """One interaction event surfaced from the page."""

    kind: EventKind
    timestamp: float  # monotonic ms at capture time
    element: ElementInfo | None = None
    value: str | None = None
    url: str | None = None


_CLOSED = object()


class EventInbox:
    """Single-consumer FIFO of captured events."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: CapturedEvent) -> bool:
        """Enqueue without blocking. Returns False once the inbox is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Stop accepting events; the consumer ends after draining what is queued."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def drain(self) -> AsyncIterator[CapturedEvent]:
        """Yield events in arrival order until the inbox is closed."""
        while True:
            item = await self._queue.get()
            try:
                if item is _CLOSED:
                    return
                yield item
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every enqueued event has been processed."""
        await self._queue.join()
