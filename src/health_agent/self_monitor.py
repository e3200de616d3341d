"""
Self-monitoring engine.

Samples the agent's own process and host metrics on a fixed cadence, measures
event-loop responsiveness, evaluates thresholds and keeps a rolling window of
snapshots and a bounded list of alerts.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .alerting.history import AlertHistory
from .alerting.models import Alert
from .config.settings import SelfMonitoringSettings
from .self_monitor_helpers.event_loop_probe import EventLoopDelaySampler
from .self_monitor_helpers.metrics_reader import PSUTIL_ERRORS, MetricsReader
from .self_monitor_helpers.models import HEALTHY, UNHEALTHY, MetricsSnapshot
from .self_monitor_helpers.snapshot_store import SnapshotStore
from .self_monitor_helpers.threshold_evaluator import evaluate_thresholds
from .self_monitor_helpers.uptime import format_uptime

logger = logging.getLogger(__name__)

AlertCallback = Callable[[Alert], Awaitable[Any]]

COLLECTION_ERRORS = PSUTIL_ERRORS + (RuntimeError, ValueError, TypeError, AttributeError)


class SelfMonitor:
    """Watches the health of the agent process itself."""

    def __init__(
        self,
        settings: SelfMonitoringSettings,
        *,
        metrics_reader: Optional[MetricsReader] = None,
        alert_callback: Optional[AlertCallback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.thresholds = settings.thresholds
        self.metrics_reader = metrics_reader if metrics_reader is not None else MetricsReader()
        self.alert_callback = alert_callback
        self.loop_sampler = EventLoopDelaySampler(settings.event_loop_sample_ms / 1000.0)
        self.snapshots = SnapshotStore(settings.retention_seconds)
        self.alerts = AlertHistory(settings.max_alerts)

        self._clock = clock
        self._started_at = clock()
        self._interval_seconds = settings.interval_ms / 1000.0
        self._task: Optional[asyncio.Task[None]] = None
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        if self.running:
            logger.warning("Self-monitoring already running")
            return
        if interval_seconds is not None:
            self._interval_seconds = interval_seconds

        logger.info("Starting self-monitoring (interval: %.1fs)", self._interval_seconds)
        self.loop_sampler.start()
        await self.collect_metrics()
        self._task = asyncio.create_task(self._monitoring_loop(), name="self-monitor-loop")

    async def stop(self) -> None:
        if self._task is not None:
            logger.info("Stopping self-monitoring")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.loop_sampler.stop()

    async def _monitoring_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                await self.collect_metrics()
            except COLLECTION_ERRORS:
                logger.exception("Self-monitoring cycle failed")

    def take_snapshot(self) -> MetricsSnapshot:
        """Read every metric once without storing or evaluating anything."""
        return MetricsSnapshot(
            observed_at=self._clock(),
            process_memory=self.metrics_reader.read_memory(),
            process_cpu=self.metrics_reader.read_cpu(),
            event_loop_delay_ms=self.loop_sampler.latest_delay_ms,
            system_load=self.metrics_reader.read_system_load(),
        )

    async def collect_metrics(self) -> MetricsSnapshot:
        """Run one sampling cycle: read, evaluate, store, purge, forward alerts."""
        snapshot = self.take_snapshot()
        new_alerts = self.evaluate_thresholds(snapshot)
        snapshot.health = UNHEALTHY if new_alerts else HEALTHY
        snapshot.issues = [alert.message for alert in new_alerts]

        self.snapshots.add(snapshot)
        self.snapshots.purge(snapshot.observed_at)
        self.alerts.extend(new_alerts)
        self._cycles += 1

        if new_alerts:
            logger.warning("Self-monitoring found %d issue(s): %s", len(new_alerts), "; ".join(snapshot.issues))
        if self.alert_callback is not None:
            for alert in new_alerts:
                await self.alert_callback(alert)
        return snapshot

    def evaluate_thresholds(self, snapshot: MetricsSnapshot) -> List[Alert]:
        return evaluate_thresholds(snapshot, self.thresholds)

    def get_current_metrics(self) -> Optional[Dict[str, Any]]:
        latest = self.snapshots.latest()
        return latest.to_dict() if latest is not None else None

    def get_metrics_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [snapshot.to_dict() for snapshot in self.snapshots.history(limit)]

    def get_recent_alerts(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [alert.to_dict() for alert in self.alerts.recent(limit)]

    def get_uptime(self) -> Dict[str, Any]:
        seconds = max(0.0, self._clock() - self._started_at)
        return {"seconds": int(seconds), "formatted": format_uptime(seconds)}

    def get_status(self) -> Dict[str, Any]:
        latest = self.snapshots.latest()
        return {
            "running": self.running,
            "interval_seconds": self._interval_seconds,
            "health": latest.health if latest is not None else "unknown",
            "cycles": self._cycles,
            "snapshots": len(self.snapshots),
            "alerts": len(self.alerts),
            "event_loop_delay_ms": self.loop_sampler.latest_delay_ms,
            "max_event_loop_delay_ms": self.loop_sampler.max_delay_ms,
            "uptime": self.get_uptime(),
        }


__all__ = ["SelfMonitor"]
