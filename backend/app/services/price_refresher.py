"""Periodic quote refresh for open positions."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable

from app.providers.quotes import Quote, QuoteFeed

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[dict[str, Quote]], Awaitable[Any] | Any]


class PriceRefresher:
    """Fetch quotes for the current tickers every ``interval_seconds``.

    A tick that arrives while the previous refresh is still running is
    skipped. ``on_update`` receives the full quote map of each completed
    refresh and must be idempotent.
    """

    def __init__(
        self,
        feed: QuoteFeed,
        tickers_provider: Callable[[], Iterable[str]],
        on_update: UpdateCallback,
        interval_seconds: float = 60.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._feed = feed
        self._tickers_provider = tickers_provider
        self._on_update = on_update
        self._interval = interval_seconds
        self._loop_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[dict[str, Quote] | None] | None = None
        self.skipped_ticks = 0

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Price refresher started with %.1fs interval", self._interval)

    async def stop(self) -> None:
        tasks = [t for t in (self._loop_task, self._refresh_task) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loop_task = None
        self._refresh_task = None
        logger.info("Price refresher stopped")

    async def refresh_once(self) -> dict[str, Quote] | None:
        """Run one refresh now; returns ``None`` if one is already running."""

        if self.in_flight:
            self.skipped_ticks += 1
            logger.debug("Refresh already in flight; skipping")
            return None
        self._refresh_task = asyncio.create_task(self._refresh())
        return await self._refresh_task

    async def _refresh(self) -> dict[str, Quote]:
        tickers = sorted(set(self._tickers_provider()))
        if not tickers:
            return {}
        quotes = await self._feed.fetch_quotes(tickers)
        outcome = self._on_update(quotes)
        if inspect.isawaitable(outcome):
            await outcome
        logger.debug("Refreshed %d quotes", len(quotes))
        return quotes

    async def _run(self) -> None:
        while True:
            if self.in_flight:
                self.skipped_ticks += 1
                logger.debug("Refresh already in flight; skipping tick")
            else:
                self._refresh_task = asyncio.create_task(self._refresh())
                self._refresh_task.add_done_callback(_log_failure)
            await asyncio.sleep(self._interval)


def _log_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Price refresh failed: %s", exc, exc_info=exc)


__all__ = ["PriceRefresher", "UpdateCallback"]
