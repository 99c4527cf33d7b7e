"""
Driver facade consumed by the engine.

The embedding application wraps its real browser driver behind
``BrowserDriver``. Element handles are opaque to the engine; selectors are
passed in the driver-native string form produced by
``SelectorStrategy.to_selector`` (css as-is, ``xpath=``, ``text=``).

Screenshots go to an ``ArtifactSink`` supplied by the caller; the engine only
keeps the references the sink hands back.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

ElementHandle = Any
HostCallback = Callable[..., Any]
NavigationCallback = Callable[[str], Any]


@runtime_checkable
class BrowserDriver(Protocol):
    """Narrow async interface over a live browser page."""

    async def navigate(self, url: str) -> None: ...

    async def locate(self, selector: str) -> ElementHandle | None: ...

    async def click(self, handle: ElementHandle) -> None: ...

    async def type(self, handle: ElementHandle, text: str) -> None: ...

    async def get_text(self, handle: ElementHandle) -> str: ...

    async def is_visible(self, handle: ElementHandle) -> bool: ...

    async def is_enabled(self, handle: ElementHandle) -> bool: ...

    async def evaluate(self, script: str, *args: Any) -> Any: ...

    async def expose_host_function(self, name: str, callback: HostCallback) -> None: ...

    async def remove_host_function(self, name: str) -> None: ...

    def on_navigation(self, callback: NavigationCallback) -> None: ...

    def off_navigation(self, callback: NavigationCallback) -> None: ...

    async def screenshot(self) -> bytes: ...

    async def wait_for_load_idle(self) -> None: ...

    async def current_url(self) -> str: ...


class ArtifactSink(Protocol):
    """Receives captured artifacts and returns an opaque reference."""

    def store(self, name: str, data: bytes) -> str: ...


class MemoryArtifactSink:
    """Keeps artifacts in memory, keyed by a sanitized unique name."""

    def __init__(self) -> None:
        self._artifacts: dict[str, bytes] = {}

    def store(self, name: str, data: bytes) -> str:
        base = re.sub(r"[^\w\-.]", "_", name) or "artifact"
        ref = base
        suffix = 1
        while ref in self._artifacts:
            suffix += 1
            ref = f"{base}_{suffix}"
        self._artifacts[ref] = data
        logger.debug("Stored artifact", ref=ref, size=len(data))
        return ref

    def get(self, ref: str) -> bytes:
        return self._artifacts[ref]

    def __contains__(self, ref: object) -> bool:
        return ref in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)
