"""Alert model, bounded history, throttling and dispatch."""

from .history import AlertHistory
from .models import Alert, AlertSeverity, new_alert_id
from .throttle import AlertThrottle
from .dispatcher import AlertDispatcher

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertHistory",
    "AlertSeverity",
    "AlertThrottle",
    "new_alert_id",
]
