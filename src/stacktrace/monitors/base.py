"""RepeatingTask — a cancellable periodic callback bound to a monitor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class RepeatingTask:
    """Run an async callback every *interval* seconds until stopped.

    The callback always runs to completion: :meth:`stop` wakes the loop while
    it is sleeping, or waits for the in-flight run to finish, but never
    cancels a run midway.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: float,
        *,
        name: str = "repeating-task",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._callback = callback
        self._interval = interval
        self._name = name
        self._stopped = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._runs = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        """Number of completed callback runs."""
        return self._runs

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._loop(), name=self._name)

    async def stop(self) -> None:
        """Stop the loop, waiting for an in-flight callback to finish."""
        if self._task is None:
            return
        self._stopped.set()
        task, self._task = self._task, None
        await task

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
                return
            except TimeoutError:
                pass

            try:
                await self._callback()
            except Exception:
                logger.exception("Periodic task %s failed", self._name)
            self._runs += 1
