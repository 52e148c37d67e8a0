"""Recurring background work with explicit start/stop hooks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run an async callback every `interval` seconds until stopped.

    The loop waits on a stop event rather than sleeping, so `stop()` returns
    promptly. Failures in the callback are logged and the loop carries on.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop if it is not already running."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def run_once(self) -> None:
        """Invoke the callback a single time, logging rather than raising."""
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Periodic task %s failed: %s", self.name, exc, exc_info=True)
        finally:
            self.runs += 1

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except TimeoutError:
                await self.run_once()
