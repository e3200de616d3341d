"""Helpers used by the health orchestrator."""

from .alert_classifier import classify_result, classify_results, overall_status
from .database_check import DatabaseCheckResult, DatabaseHealthChecker, classify_reply
from .result_store import ResultStore
from .scheduler import RecurringTimer, Schedule, interval_to_schedule
from .statistics import CheckStatistics
from .sweep import SweepSummary, error_result, summarize, sweep_report

__all__ = [
    "CheckStatistics",
    "DatabaseCheckResult",
    "DatabaseHealthChecker",
    "RecurringTimer",
    "ResultStore",
    "Schedule",
    "SweepSummary",
    "classify_reply",
    "classify_result",
    "classify_results",
    "error_result",
    "interval_to_schedule",
    "overall_status",
    "summarize",
    "sweep_report",
]
