"""Running counters for target checks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional

from ..probes.models import CheckResult


@dataclass
class CheckStatistics:
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    sweeps: int = 0
    average_response_time_ms: float = 0.0
    last_check_duration_ms: Optional[float] = None
    last_full_check_at: Optional[float] = None
    _timed_checks: int = 0

    def record(self, results: Iterable[CheckResult], duration_ms: float) -> None:
        """Count each result once; response time is a running mean over timed results."""
        for result in results:
            self.total_checks += 1
            if result.is_healthy:
                self.successful_checks += 1
            else:
                self.failed_checks += 1
            if result.response_time_ms is not None:
                self._timed_checks += 1
                self.average_response_time_ms += (
                    result.response_time_ms - self.average_response_time_ms
                ) / self._timed_checks
        self.last_check_duration_ms = duration_ms

    def record_sweep(self, results: Iterable[CheckResult], duration_ms: float, finished_at: float) -> None:
        self.record(results, duration_ms)
        self.sweeps += 1
        self.last_full_check_at = finished_at

    def reset(self) -> None:
        self.total_checks = 0
        self.successful_checks = 0
        self.failed_checks = 0
        self.sweeps = 0
        self.average_response_time_ms = 0.0
        self.last_check_duration_ms = None
        self.last_full_check_at = None
        self._timed_checks = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("_timed_checks")
        return data
