"""Bounded, append-only alert history."""

from __future__ import annotations

from typing import List

from .models import Alert

DEFAULT_MAX_ALERTS = 100


class AlertHistory:
    """Keeps the most recent ``max_alerts`` alerts in arrival order."""

    def __init__(self, max_alerts: int = DEFAULT_MAX_ALERTS) -> None:
        if max_alerts <= 0:
            raise ValueError("max_alerts must be positive")
        self.max_alerts = max_alerts
        self._alerts: List[Alert] = []

    def append(self, alert: Alert) -> None:
        # Timestamps never move backwards inside the history.
        if self._alerts and alert.timestamp < self._alerts[-1].timestamp:
            alert.timestamp = self._alerts[-1].timestamp
        self._alerts.append(alert)
        self.truncate()

    def extend(self, alerts: List[Alert]) -> None:
        for alert in alerts:
            self.append(alert)

    def truncate(self) -> None:
        overflow = len(self._alerts) - self.max_alerts
        if overflow > 0:
            del self._alerts[:overflow]

    def recent(self, limit: int | None = 10) -> List[Alert]:
        if not limit:
            return list(self._alerts)
        return self._alerts[-limit:]

    def clear(self) -> None:
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)

    def __iter__(self):
        return iter(list(self._alerts))
