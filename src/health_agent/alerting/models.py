from __future__ import annotations

"""Shared data structures for agent alerting."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class AlertSeverity(Enum):
    """Simple alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


def new_alert_id() -> str:
    return f"alert-{uuid.uuid4().hex}"


@dataclass
class Alert:
    """Simple alert data structure."""

    message: str
    severity: AlertSeverity
    timestamp: float
    alert_type: str
    target: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    alert_id: str = field(default_factory=new_alert_id)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.alert_id,
            "type": self.alert_type,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.target is not None:
            payload["target"] = self.target
        if self.details:
            payload["details"] = dict(self.details)
        return payload
