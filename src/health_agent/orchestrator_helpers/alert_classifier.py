"""Turn check results into alerts."""

from __future__ import annotations

from typing import Iterable, List

from ..alerting.models import Alert, AlertSeverity
from ..probes.models import CheckResult


def classify_result(result: CheckResult) -> Alert | None:
    """Critical targets that are not healthy are down; other targets are degraded."""
    if result.is_healthy:
        return None
    details = {"status": result.status.value}
    if result.error:
        details["error"] = result.error
    if result.response_time_ms is not None:
        details["response_time_ms"] = result.response_time_ms

    if result.critical:
        return Alert(
            message=f"Critical service {result.target_name} is unhealthy",
            severity=AlertSeverity.CRITICAL,
            timestamp=result.observed_at,
            alert_type="service-down",
            target=result.target_name,
            details=details,
        )
    return Alert(
        message=f"Service {result.target_name} is experiencing issues",
        severity=AlertSeverity.WARNING,
        timestamp=result.observed_at,
        alert_type="service-degraded",
        target=result.target_name,
        details=details,
    )


def classify_results(results: Iterable[CheckResult]) -> List[Alert]:
    alerts: List[Alert] = []
    for result in results:
        alert = classify_result(result)
        if alert is not None:
            alerts.append(alert)
    return alerts


def overall_status(results: Iterable[CheckResult]) -> str:
    """``critical`` if a critical target is down, ``warning`` if anything else is, else ``healthy``."""
    status = "healthy"
    for result in results:
        if result.is_healthy:
            continue
        if result.critical:
            return "critical"
        status = "warning"
    return status
