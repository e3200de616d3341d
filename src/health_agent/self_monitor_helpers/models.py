"""Snapshot data structures for self-monitoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class ProcessMemory:
    rss_mb: float
    vms_mb: float


@dataclass(frozen=True)
class ProcessCpu:
    percent: float
    user_seconds: float
    system_seconds: float


@dataclass(frozen=True)
class SystemLoad:
    load_average: Tuple[float, float, float]
    memory_percent: float


@dataclass
class MetricsSnapshot:
    """One timestamped capture of the agent's own resource usage."""

    observed_at: float
    process_memory: ProcessMemory
    process_cpu: ProcessCpu
    event_loop_delay_ms: float
    system_load: SystemLoad
    health: str = HEALTHY
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.observed_at,
            "process": {
                "memory": {"rss_mb": self.process_memory.rss_mb, "vms_mb": self.process_memory.vms_mb},
                "cpu": {
                    "percent": self.process_cpu.percent,
                    "user_seconds": self.process_cpu.user_seconds,
                    "system_seconds": self.process_cpu.system_seconds,
                },
            },
            "event_loop_delay_ms": self.event_loop_delay_ms,
            "system": {
                "load_average": list(self.system_load.load_average),
                "memory_percent": self.system_load.memory_percent,
            },
            "health": self.health,
            "issues": list(self.issues),
        }
