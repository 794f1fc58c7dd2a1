from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

log = logging.getLogger("bus.scheduling")


def seconds_until_next(interval: int, now: Optional[float] = None) -> float:
    """
    Seconds until the next wall-clock multiple of `interval`.

    With interval=3600 this fires at minute 0 of every hour, i.e. cron "0 * * * *".
    """
    now = time.time() if now is None else now
    remaining = interval - (now % interval)
    return remaining if remaining > 0 else float(interval)


class ScheduledTrigger:
    """Runs `callback` on every interval boundary until stopped; a failing run is logged, not fatal."""

    def __init__(self, name: str, interval_seconds: int, callback: Callable[[], Awaitable[None]]):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.runs = 0

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name=f"trigger:{self.name}")
        log.info("Scheduled trigger '%s' every %ds", self.name, self.interval_seconds)

    async def fire(self) -> None:
        self.runs += 1
        try:
            await self.callback()
        except Exception as e:
            log.exception("Scheduled trigger '%s' failed: %s", self.name, e)

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            wait = seconds_until_next(self.interval_seconds)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                await self.fire()

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            try:
                await self._task
            finally:
                self._task = None
        log.info("Scheduled trigger '%s' stopped", self.name)


__all__ = ["ScheduledTrigger", "seconds_until_next"]
