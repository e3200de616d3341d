"""Event-loop responsiveness sampling."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional


class EventLoopDelaySampler:
    """
    Measures how late the loop wakes a sleeping task.

    Every ``sample_interval`` seconds the sampler records the gap between the
    scheduled and the actual wake-up time; the most recent gap is the current
    event-loop delay.
    """

    def __init__(self, sample_interval: float = 0.1) -> None:
        self.sample_interval = max(sample_interval, 0.01)
        self._latest_delay_ms = 0.0
        self._max_delay_ms = 0.0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def latest_delay_ms(self) -> float:
        return self._latest_delay_ms

    @property
    def max_delay_ms(self) -> float:
        return self._max_delay_ms

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def record(self, delay_ms: float) -> None:
        self._latest_delay_ms = max(0.0, delay_ms)
        self._max_delay_ms = max(self._max_delay_ms, self._latest_delay_ms)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._sample_loop(), name="event-loop-delay-sampler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _sample_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            expected = loop.time() + self.sample_interval
            await asyncio.sleep(self.sample_interval)
            self.record((loop.time() - expected) * 1000.0)
