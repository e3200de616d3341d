"""Broker messaging: envelopes, topology, the gateway and domain publishers."""

from .envelope import BrokerMessage
from .errors import BrokerRequestTimeout, BrokerTransportError, EnvelopeDecodeError, MessagingError
from .gateway import MessagingGateway, create_redis_client
from .publishers import (
    publish_health_alert,
    publish_health_metrics,
    publish_system_status,
    request_database_health,
)
from .topology import (
    DEFAULT_TOPOLOGY,
    HEALTH_EXCHANGE,
    SYSTEM_EXCHANGE,
    BindingSpec,
    BrokerTopology,
    ExchangeSpec,
    QueueSpec,
    TopologyKeys,
    topic_matches,
)

__all__ = [
    "BindingSpec",
    "BrokerMessage",
    "BrokerRequestTimeout",
    "BrokerTopology",
    "BrokerTransportError",
    "DEFAULT_TOPOLOGY",
    "EnvelopeDecodeError",
    "ExchangeSpec",
    "HEALTH_EXCHANGE",
    "MessagingError",
    "MessagingGateway",
    "QueueSpec",
    "SYSTEM_EXCHANGE",
    "TopologyKeys",
    "create_redis_client",
    "publish_health_alert",
    "publish_health_metrics",
    "publish_system_status",
    "request_database_health",
    "topic_matches",
]
