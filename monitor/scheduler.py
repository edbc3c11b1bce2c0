"""Cancellable repeating tasks on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTask:
    """Runs ``callback`` immediately and then every ``period`` seconds until stopped.

    A failing callback is logged and retried on the next tick. ``start`` and
    ``stop`` are both safe to call repeatedly.
    """

    def __init__(self, name: str, callback: Callable[[], Awaitable[object]], period: float) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.name = name
        self.period = period
        self._callback = callback
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self._callback()
            except Exception:  # noqa: BLE001 - keep the schedule alive
                logger.exception("Recurring task failed", extra={"reason": self.name})
            await asyncio.sleep(self.period)
