"""Threshold checks for self-monitoring snapshots."""

from __future__ import annotations

from typing import List

from ..alerting.models import Alert, AlertSeverity
from ..config.settings import ThresholdSettings
from .models import MetricsSnapshot


def evaluate_thresholds(snapshot: MetricsSnapshot, thresholds: ThresholdSettings) -> List[Alert]:
    """One warning alert per breached metric. No deduplication across calls."""
    alerts: List[Alert] = []

    memory_mb = snapshot.process_memory.rss_mb
    if memory_mb > thresholds.memory_mb:
        alerts.append(
            Alert(
                message=f"High memory usage: {memory_mb:.1f}MB (threshold {thresholds.memory_mb:g}MB)",
                severity=AlertSeverity.WARNING,
                timestamp=snapshot.observed_at,
                alert_type="memory-usage",
                details={"value": memory_mb, "threshold": thresholds.memory_mb},
            )
        )

    cpu_percent = snapshot.process_cpu.percent
    if cpu_percent > thresholds.cpu_percent:
        alerts.append(
            Alert(
                message=f"High CPU usage: {cpu_percent:.1f}% (threshold {thresholds.cpu_percent:g}%)",
                severity=AlertSeverity.WARNING,
                timestamp=snapshot.observed_at,
                alert_type="cpu-usage",
                details={"value": cpu_percent, "threshold": thresholds.cpu_percent},
            )
        )

    delay_ms = snapshot.event_loop_delay_ms
    if delay_ms > thresholds.event_loop_delay_ms:
        alerts.append(
            Alert(
                message=f"High event loop delay: {delay_ms:.1f}ms (threshold {thresholds.event_loop_delay_ms:g}ms)",
                severity=AlertSeverity.WARNING,
                timestamp=snapshot.observed_at,
                alert_type="event-loop-delay",
                details={"value": delay_ms, "threshold": thresholds.event_loop_delay_ms},
            )
        )

    return alerts
