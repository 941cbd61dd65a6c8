"""The single periodic tick source.

One loop wakes every ``interval_seconds`` and hands the current time to each
registered listener, one after the other. Listeners are awaited to completion
before the next one runs, so a slow listener delays the following tick rather
than overlapping it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)

TickListener = Callable[[datetime], Awaitable[None]]


class Scheduler:
    def __init__(self, interval_seconds: float, clock: Clock | None = None) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.clock: Clock = clock or SystemClock()
        self.tick_count = 0
        self.last_tick: datetime | None = None
        self._listeners: list[TickListener] = []
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: TickListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TickListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name="automation-scheduler")
        logger.info("Scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped", extra={"ticks": self.tick_count})

    async def tick(self, now: datetime | None = None) -> None:
        """Deliver one tick to every listener.

        A failing listener is logged and does not prevent the others from running.
        """

        now = now or self.clock.now()
        self.tick_count += 1
        self.last_tick = now
        for listener in list(self._listeners):
            try:
                await listener(now)
            except Exception:
                logger.exception("Scheduler listener failed", extra={"tick": now.isoformat()})

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            await self.tick()
            await self._wait_interval()

    async def _wait_interval(self) -> None:
        stopped = asyncio.ensure_future(self._stop_event.wait())
        timer = asyncio.ensure_future(self.clock.sleep(self.interval_seconds))
        try:
            await asyncio.wait({stopped, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            timer.cancel()
