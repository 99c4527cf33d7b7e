"""
Multi-strategy element resolution with fallback and retry.

Strategies are tried in ascending priority (ties keep declaration order).
A strategy that matches nothing is skipped at once; a strategy that matches
but fails the visibility/enabled gate is polled until its own timeout runs
out. When every strategy has failed the whole pass is repeated up to
``retry_count`` more times. Resolution is all-or-nothing per call.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from journeyqa.errors import ResolutionError
from journeyqa.models import ResolveOptions, SelectorStrategy

if TYPE_CHECKING:
    from journeyqa.driver import BrowserDriver, ElementHandle

logger = structlog.get_logger(__name__)


class SelectorResolver:
    """Resolves a ranked list of selector strategies into one live handle."""

    def __init__(self, driver: BrowserDriver) -> None:
        self._driver = driver
        self._log = logger.bind(component="selector_resolver")

    async def resolve(
        self,
        strategies: Sequence[SelectorStrategy],
        options: ResolveOptions | None = None,
    ) -> ElementHandle | None:
        """
        Resolve strategies to a handle.

        Args:
            strategies: Candidate strategies, any order
            options: Timeout, gating and retry options

        Returns:
            The first handle that satisfies the gates, or None if no strategy
            matched in any pass. Driver transport errors propagate.
        """
        opts = options or ResolveOptions()
        ordered = sorted(strategies, key=lambda s: s.priority)

        for attempt in range(opts.retry_count + 1):
            for strategy in ordered:
                handle = await self._materialize(strategy, opts)
                if handle is not None:
                    if attempt or strategy is not ordered[0]:
                        self._log.debug(
                            "Resolved via fallback strategy",
                            selector=strategy.to_selector(),
                            attempt=attempt + 1,
                        )
                    return handle

            if attempt < opts.retry_count:
                delay_ms = opts.retry_delay_ms * (2 ** attempt)
                self._log.debug(
                    "No strategy matched, retrying",
                    attempt=attempt + 1,
                    max_retries=opts.retry_count,
                    delay_ms=delay_ms,
                )
                if delay_ms:
                    await asyncio.sleep(delay_ms / 1000)

        self._log.debug(
            "Element not resolved",
            strategies=[s.to_selector() for s in ordered],
            passes=opts.retry_count + 1,
        )
        return None

    async def resolve_or_raise(
        self,
        strategies: Sequence[SelectorStrategy],
        options: ResolveOptions | None = None,
        step_id: str | None = None,
    ) -> ElementHandle:
        """Like ``resolve`` but raises ResolutionError when nothing matched."""
        handle = await self.resolve(strategies, options)
        if handle is None:
            tried = ", ".join(s.to_selector() for s in strategies)
            raise ResolutionError(f"Element not found: {tried}", step_id=step_id)
        return handle

    async def _materialize(
        self,
        strategy: SelectorStrategy,
        opts: ResolveOptions,
    ) -> ElementHandle | None:
        """Locate one strategy and wait for its gates within its own timeout."""
        handle = await self._driver.locate(strategy.to_selector())
        if handle is None:
            return None

        deadline = time.monotonic() + opts.timeout_ms / 1000
        while True:
            if await self._gates_pass(handle, opts):
                return handle
            if time.monotonic() >= deadline:
                self._log.debug(
                    "Element found but never became ready",
                    selector=strategy.to_selector(),
                    wait_for_visible=opts.wait_for_visible,
                    wait_for_enabled=opts.wait_for_enabled,
                )
                return None
            await asyncio.sleep(opts.poll_interval_ms / 1000)

    async def _gates_pass(self, handle: ElementHandle, opts: ResolveOptions) -> bool:
        if opts.wait_for_visible and not await self._driver.is_visible(handle):
            return False
        if opts.wait_for_enabled and not await self._driver.is_enabled(handle):
            return False
        return True
