"""Domain-level publishing helpers on top of :class:`MessagingGateway`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from .envelope import BrokerMessage
from .topology import HEALTH_EXCHANGE, SYSTEM_EXCHANGE

if TYPE_CHECKING:
    from ..alerting.models import Alert
    from .gateway import MessagingGateway

SERVICE_STATUS_ROUTING_KEY = "status.health-monitor"


async def publish_health_metrics(
    gateway: "MessagingGateway",
    metrics: Dict[str, Any],
    *,
    metric_type: str = "health-summary",
    routing_key: str = "metrics.health",
) -> List[str]:
    """Publish a metrics document on the health exchange."""
    message = BrokerMessage.event(gateway.settings.source, metric_type, metrics)
    return await gateway.publish(HEALTH_EXCHANGE, routing_key, message)


async def publish_health_alert(gateway: "MessagingGateway", alert: "Alert") -> List[str]:
    """Publish an alert as ``alerts.<severity>``."""
    severity = alert.severity.value
    message = BrokerMessage.event(gateway.settings.source, "health-alert", alert.to_dict(), severity=severity)
    return await gateway.publish(HEALTH_EXCHANGE, f"alerts.{severity}", message)


async def publish_system_status(
    gateway: "MessagingGateway",
    status: Dict[str, Any],
    *,
    routing_key: str = SERVICE_STATUS_ROUTING_KEY,
) -> List[str]:
    message = BrokerMessage.event(gateway.settings.source, "service-status", status)
    return await gateway.publish(SYSTEM_EXCHANGE, routing_key, message)


async def request_database_health(
    gateway: "MessagingGateway",
    query_id: str,
    query: str,
    *,
    timeout_ms: float,
    exchange: str = SYSTEM_EXCHANGE,
    routing_key: str = "database.health.request",
) -> Dict[str, Any]:
    """Ask the database service to run *query* and return its reply body."""
    payload = {"queryId": query_id, "query": query, "timeout": timeout_ms}
    return await gateway.request(
        exchange,
        routing_key,
        payload,
        timeout_ms,
        message_type="database-health-check",
    )


__all__ = [
    "SERVICE_STATUS_ROUTING_KEY",
    "publish_health_alert",
    "publish_health_metrics",
    "publish_system_status",
    "request_database_health",
]
