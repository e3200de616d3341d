"""
Broker topology: topic exchanges, durable queues and the bindings between them.

On Redis an exchange is a hash, its bindings a set of ``"<pattern> <queue>"``
members and a queue a stream with a consumer group plus a meta hash. Routing
is resolved here, against the declared bindings, using topic semantics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

DEFAULT_QUEUE_TTL_MS = 3_600_000
DEFAULT_QUEUE_MAX_LENGTH = 10_000

HEALTH_EXCHANGE = "health"
SYSTEM_EXCHANGE = "system"


@dataclass(frozen=True)
class ExchangeSpec:
    name: str
    exchange_type: str = "topic"
    durable: bool = True


@dataclass(frozen=True)
class QueueSpec:
    name: str
    durable: bool = True
    message_ttl_ms: int = DEFAULT_QUEUE_TTL_MS
    max_length: int = DEFAULT_QUEUE_MAX_LENGTH


@dataclass(frozen=True)
class BindingSpec:
    exchange: str
    pattern: str
    queue: str

    @property
    def member(self) -> str:
        return f"{self.pattern} {self.queue}"


def topic_matches(pattern: str, routing_key: str) -> bool:
    """Match a dotted routing key against a topic pattern.

    ``*`` matches exactly one word, ``#`` matches zero or more words.
    """
    return _match_words(pattern.split("."), routing_key.split("."))


def _match_words(pattern: List[str], words: List[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match_words(rest, words[index:]) for index in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match_words(rest, words[1:])
    return False


@dataclass(frozen=True)
class BrokerTopology:
    exchanges: Tuple[ExchangeSpec, ...]
    queues: Tuple[QueueSpec, ...]
    bindings: Tuple[BindingSpec, ...]

    def queue(self, name: str) -> QueueSpec:
        for spec in self.queues:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def route(self, exchange: str, routing_key: str) -> List[QueueSpec]:
        """Queues that receive a message published with *routing_key* on *exchange*."""
        matched: List[QueueSpec] = []
        for binding in self.bindings:
            if binding.exchange != exchange or not topic_matches(binding.pattern, routing_key):
                continue
            spec = self.queue(binding.queue)
            if spec not in matched:
                matched.append(spec)
        return matched


class TopologyKeys:
    """Redis key names for topology objects under a common prefix."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def exchange(self, name: str) -> str:
        return f"{self.prefix}:exchange:{name}"

    def bindings(self, exchange: str) -> str:
        return f"{self.prefix}:exchange:{exchange}:bindings"

    def queue(self, name: str) -> str:
        return f"{self.prefix}:queue:{name}"

    def queue_meta(self, name: str) -> str:
        return f"{self.prefix}:queue:{name}:meta"

    def reply(self, correlation_id: str) -> str:
        return f"{self.prefix}:reply:{correlation_id}"


DEFAULT_TOPOLOGY = BrokerTopology(
    exchanges=(ExchangeSpec(HEALTH_EXCHANGE), ExchangeSpec(SYSTEM_EXCHANGE)),
    queues=(
        QueueSpec("health.metrics"),
        QueueSpec("health.alerts"),
        QueueSpec("system.status"),
        QueueSpec("database.health"),
    ),
    bindings=(
        BindingSpec(HEALTH_EXCHANGE, "metrics.*", "health.metrics"),
        BindingSpec(HEALTH_EXCHANGE, "alerts.*", "health.alerts"),
        BindingSpec(SYSTEM_EXCHANGE, "status.*", "system.status"),
        BindingSpec(SYSTEM_EXCHANGE, "database.#", "database.health"),
    ),
)


__all__ = [
    "BindingSpec",
    "BrokerTopology",
    "DEFAULT_TOPOLOGY",
    "ExchangeSpec",
    "HEALTH_EXCHANGE",
    "QueueSpec",
    "SYSTEM_EXCHANGE",
    "TopologyKeys",
    "topic_matches",
]
