"""Aggregation of a full probe sweep."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..probes.models import CheckResult, CheckStatus, Target


@dataclass
class SweepSummary:
    total: int
    healthy: int
    unhealthy: int
    critical: int
    average_response_time_ms: Optional[float]
    duration_ms: float
    results: List[CheckResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "healthy": self.healthy,
            "unhealthy": self.unhealthy,
            "critical": self.critical,
            "average_response_time_ms": self.average_response_time_ms,
            "duration_ms": self.duration_ms,
        }


def summarize(results: Sequence[CheckResult], duration_ms: float) -> SweepSummary:
    healthy = sum(1 for result in results if result.is_healthy)
    timings = [result.response_time_ms for result in results if result.response_time_ms is not None]
    return SweepSummary(
        total=len(results),
        healthy=healthy,
        unhealthy=len(results) - healthy,
        critical=sum(1 for result in results if result.critical and not result.is_healthy),
        average_response_time_ms=sum(timings) / len(timings) if timings else None,
        duration_ms=duration_ms,
        results=list(results),
    )


def error_result(target: Target, error: str, observed_at: float, response_time_ms: Optional[float] = None) -> CheckResult:
    return CheckResult(
        target_name=target.name,
        status=CheckStatus.ERROR,
        observed_at=observed_at,
        response_time_ms=response_time_ms,
        error=error,
        critical=target.critical,
    )


def sweep_report(summary: SweepSummary) -> Dict[str, Any]:
    """Document published on ``metrics.health`` after a sweep."""
    return {
        "type": "health-check-results",
        "duration_ms": summary.duration_ms,
        "summary": summary.to_dict(),
        "results": [
            {
                "target": result.target_name,
                "status": result.status.value,
                "response_time_ms": result.response_time_ms,
                "error": result.error,
            }
            for result in summary.results
        ],
    }
