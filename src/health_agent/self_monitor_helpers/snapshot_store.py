"""Time-ordered snapshot retention."""

from __future__ import annotations

from collections import OrderedDict
from typing import List, Optional

from .models import MetricsSnapshot


class SnapshotStore:
    """Snapshots keyed by timestamp, oldest first, evicted past the retention window."""

    def __init__(self, retention_seconds: float) -> None:
        self.retention_seconds = retention_seconds
        self._snapshots: "OrderedDict[float, MetricsSnapshot]" = OrderedDict()

    def add(self, snapshot: MetricsSnapshot) -> None:
        latest = self.latest()
        # Keys stay strictly increasing even if the wall clock steps back.
        if latest is not None and snapshot.observed_at <= latest.observed_at:
            snapshot.observed_at = latest.observed_at + 1e-6
        self._snapshots[snapshot.observed_at] = snapshot

    def purge(self, now: float) -> int:
        cutoff = now - self.retention_seconds
        removed = 0
        while self._snapshots:
            oldest = next(iter(self._snapshots))
            if oldest >= cutoff:
                break
            del self._snapshots[oldest]
            removed += 1
        return removed

    def latest(self) -> Optional[MetricsSnapshot]:
        if not self._snapshots:
            return None
        return next(reversed(self._snapshots.values()))

    def history(self, limit: Optional[int] = None) -> List[MetricsSnapshot]:
        snapshots = list(self._snapshots.values())
        if limit:
            return snapshots[-limit:]
        return snapshots

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)
