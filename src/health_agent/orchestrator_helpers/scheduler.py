"""
Recurring timers for the orchestrator.

Intervals are normalised to a whole-unit schedule (every N seconds, minutes
or hours) and fired at a fixed rate: each deadline is computed from the
previous deadline rather than from when the last run finished, so slow runs
do not accumulate drift.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

_UNIT_SECONDS = {"second": 1, "minute": 60, "hour": 3600}

RUN_ERRORS = (RuntimeError, ValueError, TypeError, KeyError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class Schedule:
    unit: str
    every: int

    @property
    def period_seconds(self) -> int:
        return self.every * _UNIT_SECONDS[self.unit]

    def describe(self) -> str:
        plural = "" if self.every == 1 else "s"
        return f"every {self.every} {self.unit}{plural}"


def interval_to_schedule(interval_ms: float) -> Schedule:
    """Map an interval to the coarsest unit that divides it exactly.

    Intervals are rounded to whole seconds with a floor of one second.
    """
    seconds = max(1, int(round(interval_ms / 1000.0)))
    if seconds % 3600 == 0:
        return Schedule("hour", seconds // 3600)
    if seconds % 60 == 0:
        return Schedule("minute", seconds // 60)
    return Schedule("second", seconds)


class RecurringTimer:
    """Fires *callback* every *period_seconds* until cancelled.

    A tick is skipped while the previous run is still active. Runs execute as
    separate tasks, so cancelling the timer stops future ticks but leaves an
    in-flight run alone.
    """

    def __init__(self, name: str, period_seconds: float, callback: Callable[[], Awaitable[Any]]):
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.name = name
        self.period_seconds = period_seconds
        self.callback = callback
        self.fired = 0
        self.skipped = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._current: Optional[asyncio.Task[None]] = None
        self._runs: Set[asyncio.Task[None]] = set()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def run_in_progress(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._tick_loop(), name=f"timer-{self.name}")

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_for_runs(self) -> None:
        if self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def _tick_loop(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.period_seconds
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            self._fire()
            deadline += self.period_seconds
            now = loop.time()
            if deadline <= now:
                missed = int((now - deadline) // self.period_seconds) + 1
                deadline += missed * self.period_seconds
                logger.debug("Timer %s fell behind by %d tick(s)", self.name, missed)

    def _fire(self) -> None:
        if self.run_in_progress:
            self.skipped += 1
            logger.debug("Timer %s skipped a tick; previous run still active", self.name)
            return
        self.fired += 1
        run = asyncio.create_task(self._run(), name=f"timer-{self.name}-run")
        self._current = run
        self._runs.add(run)
        run.add_done_callback(self._runs.discard)

    async def _run(self) -> None:
        try:
            await self.callback()
        except RUN_ERRORS:
            logger.exception("Timer %s run failed", self.name)
