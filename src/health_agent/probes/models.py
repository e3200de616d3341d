"""Target descriptors and probe result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional


class TargetKind(str, Enum):
    """Probe strategy used for a target."""

    HTTP = "http"
    TCP = "tcp"


class CheckStatus(str, Enum):
    """Outcome classification of a single target check."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    ERROR = "error"


@dataclass(frozen=True)
class BasicAuthCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class Target:
    """A monitored endpoint with its own cadence and criticality."""

    name: str
    kind: TargetKind
    timeout_ms: int
    interval_ms: int
    critical: bool = False
    url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    method: str = "GET"
    expected_status: Optional[int] = None
    auth: Optional[BasicAuthCredentials] = None

    @property
    def address(self) -> str:
        if self.kind is TargetKind.HTTP:
            return self.url or ""
        return f"{self.host}:{self.port}"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "address": self.address,
            "critical": self.critical,
            "timeout_ms": self.timeout_ms,
            "interval_ms": self.interval_ms,
        }


class ProbeOutcome(NamedTuple):
    """Raw verdict returned by a probe before timing is attached."""

    healthy: bool
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class CheckResult:
    """Latest observation for one target. Replaced wholesale on every check."""

    target_name: str
    status: CheckStatus
    observed_at: float
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    critical: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_healthy(self) -> bool:
        return self.status is CheckStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target_name,
            "status": self.status.value,
            "observed_at": self.observed_at,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "critical": self.critical,
            "details": dict(self.details),
        }


__all__ = [
    "BasicAuthCredentials",
    "CheckResult",
    "CheckStatus",
    "ProbeOutcome",
    "Target",
    "TargetKind",
]
