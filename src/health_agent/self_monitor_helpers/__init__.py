"""Helper components for the self-monitoring engine."""

from .event_loop_probe import EventLoopDelaySampler
from .metrics_reader import MetricsReader
from .models import MetricsSnapshot, ProcessCpu, ProcessMemory, SystemLoad
from .snapshot_store import SnapshotStore
from .threshold_evaluator import evaluate_thresholds
from .uptime import format_uptime

__all__ = [
    "EventLoopDelaySampler",
    "MetricsReader",
    "MetricsSnapshot",
    "ProcessCpu",
    "ProcessMemory",
    "SnapshotStore",
    "SystemLoad",
    "evaluate_thresholds",
    "format_uptime",
]
