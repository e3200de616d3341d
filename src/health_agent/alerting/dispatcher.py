"""Retain, log and publish alerts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from ..messaging.errors import BrokerTransportError
from ..messaging.publishers import publish_health_alert
from .history import AlertHistory
from .models import Alert, AlertSeverity
from .throttle import AlertThrottle

if TYPE_CHECKING:
    from ..messaging.gateway import MessagingGateway

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    AlertSeverity.CRITICAL: logging.ERROR,
    AlertSeverity.WARNING: logging.WARNING,
    AlertSeverity.INFO: logging.INFO,
}


class AlertDispatcher:
    """
    Single exit point for alerts.

    Every alert is kept in the history and logged. Publication goes through the
    gateway and may be capped by an optional throttle; a broker failure is
    logged and never raised to the caller.
    """

    def __init__(
        self,
        gateway: Optional["MessagingGateway"],
        history: AlertHistory,
        throttle: Optional[AlertThrottle] = None,
    ) -> None:
        self.gateway = gateway
        self.history = history
        self.throttle = throttle
        self.published = 0
        self.suppressed = 0
        self.publish_failures = 0

    async def dispatch(self, alert: Alert) -> bool:
        """Handle one alert. Returns True when it was published."""
        self.history.append(alert)
        subject = f" [{alert.target}]" if alert.target else ""
        logger.log(_LOG_LEVELS[alert.severity], "ALERT %s%s: %s", alert.alert_type, subject, alert.message)

        if self.gateway is None:
            return False
        if self.throttle is not None and not self.throttle.record(alert):
            self.suppressed += 1
            logger.debug("Alert %s suppressed by throttle", alert.alert_type)
            return False
        try:
            await publish_health_alert(self.gateway, alert)
        except BrokerTransportError as exc:
            self.publish_failures += 1
            logger.warning("Failed to publish alert %s: %s", alert.alert_id, exc)
            return False
        self.published += 1
        return True

    async def dispatch_all(self, alerts: Iterable[Alert]) -> int:
        published = 0
        for alert in alerts:
            if await self.dispatch(alert):
                published += 1
        return published

    def clear(self) -> None:
        self.history.clear()
        if self.throttle is not None:
            self.throttle.reset()


__all__ = ["AlertDispatcher"]
