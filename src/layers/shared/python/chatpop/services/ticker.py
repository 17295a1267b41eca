"""Periodic tick scheduler.

One asyncio task per visitor session that calls a synchronous callback at a
fixed interval until stopped. Cancellation is tied to the owner's lifetime
through stop().
"""

import asyncio
from typing import Any, Callable

import structlog

logger = structlog.get_logger()


class PeriodicTicker:
    """Calls a callback every interval seconds on the running event loop."""

    def __init__(
        self,
        callback: Callable[[], Any],
        interval_seconds: float = 5.0,
        name: str = "tick",
    ):
        """Initialize the ticker.

        Args:
            callback: Synchronous function called on each tick.
            interval_seconds: Seconds between ticks.
            name: Name used in logs and for the asyncio task.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.name = name
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start ticking. Must be called from a running event loop.

        Returns:
            The ticking task.
        """
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self._task

    def stop(self) -> None:
        """Cancel the ticking task, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Ticker stopped", ticker=self.name, ticks=self.ticks)

    async def wait(self) -> None:
        """Wait until the ticker stops."""
        if self._task is None:
            return
        # A cancelled ticker is a normal stop
        await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.ticks += 1
            try:
                self.callback()
            except Exception as e:
                logger.exception("Tick callback failed", ticker=self.name, error=str(e))
