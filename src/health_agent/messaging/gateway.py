"""
Messaging gateway over a Redis broker.

Owns the broker connection and its state machine, declares the topic
topology, publishes envelopes fire-and-forget and runs request/reply
exchanges with correlation ids, private reply streams and timeouts.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import suppress
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..config.settings import BrokerSettings
from ..connection_state import ConnectionState
from .envelope import BrokerMessage
from .errors import BrokerRequestTimeout, BrokerTransportError, EnvelopeDecodeError
from .gateway_helpers.pending_replies import PendingReply, PendingReplyTable
from .gateway_helpers.reconnection import ReconnectionHandler, ReconnectionPolicy
from .gateway_helpers.streams import (
    decode_stream_response,
    ensure_awaitable,
    ensure_consumer_group,
    stream_publish,
    trim_expired,
)
from .topology import DEFAULT_TOPOLOGY, BrokerTopology, TopologyKeys

TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (RedisError, ConnectionError, OSError, asyncio.TimeoutError)
CONNECTION_LOSS_ERRORS: Tuple[Type[BaseException], ...] = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    OSError,
)

QUEUE_GROUP = "consumers"
REPLY_GROUP = "reply-readers"

ClientFactory = Callable[[BrokerSettings], Redis]


def create_redis_client(settings: BrokerSettings) -> Redis:
    return Redis(
        host=settings.host,
        port=settings.port,
        db=settings.db,
        password=settings.password,
        ssl=settings.ssl,
        socket_connect_timeout=settings.socket_connect_timeout_seconds,
        decode_responses=False,
    )


@dataclass
class GatewayCounters:
    published_messages: int = 0
    publish_failures: int = 0
    requests_sent: int = 0
    request_timeouts: int = 0
    replies_discarded: int = 0
    connection_losses: int = 0


class MessagingGateway:
    """Broker connection, topology, publish and request/reply."""

    def __init__(
        self,
        settings: BrokerSettings,
        *,
        topology: BrokerTopology = DEFAULT_TOPOLOGY,
        client_factory: ClientFactory = create_redis_client,
        reply_poll_interval_ms: int = 100,
    ) -> None:
        self.settings = settings
        self.topology = topology
        self.keys = TopologyKeys(settings.key_prefix)
        self.counters = GatewayCounters()
        self.logger = logging.getLogger(f"{__name__}.{settings.source}")

        self._client_factory = client_factory
        self._reply_poll_interval_ms = reply_poll_interval_ms
        self._client: Optional[Redis] = None
        self._state = ConnectionState.DISCONNECTED
        self._state_changed_at = time.time()
        self._pending = PendingReplyTable()
        self._reconnection = ReconnectionHandler(
            settings.source,
            ReconnectionPolicy(
                base_delay_seconds=settings.reconnect_base_delay_seconds,
                max_attempts=settings.max_reconnect_attempts,
            ),
        )
        self._watch_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing = False
        self._topology_declared = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._client is not None

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnection.attempts

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def _transition(self, new_state: ConnectionState, context: Optional[str] = None) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state
        self._state_changed_at = time.time()
        if context:
            self.logger.info("State transition: %s -> %s (%s)", old_state.value, new_state.value, context)
        else:
            self.logger.info("State transition: %s -> %s", old_state.value, new_state.value)

    # Connection lifecycle

    async def connect(self) -> None:
        """Open and verify the broker link."""
        if self.is_connected:
            return
        self._closing = False
        self._transition(ConnectionState.CONNECTING)
        try:
            await self._open_client()
        except TRANSPORT_ERRORS as exc:
            self._transition(ConnectionState.DISCONNECTED, str(exc))
            raise BrokerTransportError(
                f"Unable to connect to broker at {self.settings.host}:{self.settings.port}"
            ) from exc
        self._reconnection.reset()
        self._transition(ConnectionState.CONNECTED)
        self._start_watcher()

    async def reconnect(self) -> None:
        """Manually re-establish the link from any state, including FAILED."""
        await self._cancel_task(self._reconnect_task)
        self._reconnect_task = None
        self._reconnection.reset()
        self._pending.fail_all(BrokerTransportError("Broker connection is being re-established"))
        await self._discard_client()
        self._transition(ConnectionState.DISCONNECTED, "manual reconnect")
        await self.connect()
        await self.declare_topology()

    async def close(self) -> None:
        self._closing = True
        await self._cancel_task(self._watch_task)
        await self._cancel_task(self._reconnect_task)
        self._watch_task = None
        self._reconnect_task = None
        self._pending.fail_all(BrokerTransportError("Messaging gateway closed"))
        await self._discard_client()
        self._transition(ConnectionState.DISCONNECTED)

    async def _open_client(self) -> None:
        await self._discard_client()
        client = self._client_factory(self.settings)
        try:
            await ensure_awaitable(client.ping())
        except TRANSPORT_ERRORS:
            await self._close_client(client)
            raise
        self._client = client

    async def _discard_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await self._close_client(client)

    async def _close_client(self, client: Redis) -> None:
        try:
            await client.aclose()
        except TRANSPORT_ERRORS as exc:  # policy_guard: allow-silent-handler
            self.logger.debug("Ignoring error while closing broker client: %s", exc)

    @staticmethod
    async def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    def _require_client(self) -> Redis:
        if not self.is_connected:
            raise BrokerTransportError(f"Broker not connected (state={self._state.value})")
        assert self._client is not None
        return self._client

    # Liveness and reconnection

    def _start_watcher(self) -> None:
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(self._watch_connection(), name=f"{self.settings.source}-broker-watch")

    async def _watch_connection(self) -> None:
        interval = self.settings.health_check_interval_seconds
        while self.is_connected and not self._closing:
            await asyncio.sleep(interval)
            client = self._client
            if client is None or not self.is_connected:
                return
            try:
                await ensure_awaitable(client.ping())
            except TRANSPORT_ERRORS as exc:
                self._on_connection_lost(f"ping failed: {exc}")
                return

    def schedule_reconnect(self, reason: str) -> None:
        """Enter RECONNECTING and retry in the background, e.g. after a failed initial connect."""
        self._on_connection_lost(reason)

    def _handle_operation_failure(self, exc: BaseException) -> None:
        if isinstance(exc, CONNECTION_LOSS_ERRORS):
            self._on_connection_lost(str(exc))

    def _on_connection_lost(self, reason: str) -> None:
        if self._closing or self._state in (ConnectionState.RECONNECTING, ConnectionState.FAILED):
            return
        self.counters.connection_losses += 1
        self.logger.error("Broker connection lost: %s", reason)
        self._transition(ConnectionState.RECONNECTING, reason)
        self._topology_declared = False
        self._pending.fail_all(BrokerTransportError(f"Broker connection lost: {reason}"))
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(), name=f"{self.settings.source}-broker-reconnect"
        )

    async def _reconnect_loop(self) -> None:
        if await self._reconnection.run(self._attempt_reconnect):
            self._transition(ConnectionState.CONNECTED, "reconnected")
            self._start_watcher()
        else:
            self._transition(ConnectionState.FAILED, "max reconnection attempts reached")

    async def _attempt_reconnect(self) -> None:
        await self._open_client()
        assert self._client is not None
        try:
            await self._declare(self._client)
        except TRANSPORT_ERRORS:
            await self._discard_client()
            raise

    # Topology

    async def declare_topology(self) -> None:
        """Ensure exchanges, queues and bindings exist. Safe to call repeatedly."""
        client = self._require_client()
        try:
            await self._declare(client)
        except TRANSPORT_ERRORS as exc:
            self._handle_operation_failure(exc)
            raise BrokerTransportError("Failed to declare broker topology") from exc

    async def _declare(self, client: Redis) -> None:
        for exchange in self.topology.exchanges:
            await ensure_awaitable(
                client.hset(
                    self.keys.exchange(exchange.name),
                    mapping={"type": exchange.exchange_type, "durable": int(exchange.durable)},
                )
            )
        for queue in self.topology.queues:
            await ensure_consumer_group(client, self.keys.queue(queue.name), QUEUE_GROUP)
            await ensure_awaitable(
                client.hset(
                    self.keys.queue_meta(queue.name),
                    mapping={
                        "durable": int(queue.durable),
                        "message_ttl_ms": queue.message_ttl_ms,
                        "max_length": queue.max_length,
                    },
                )
            )
        for binding in self.topology.bindings:
            await ensure_awaitable(client.sadd(self.keys.bindings(binding.exchange), binding.member))
        self._topology_declared = True
        self.logger.info(
            "Declared topology: %d exchanges, %d queues, %d bindings",
            len(self.topology.exchanges),
            len(self.topology.queues),
            len(self.topology.bindings),
        )

    # Publish

    async def publish(self, exchange: str, routing_key: str, envelope: BrokerMessage) -> List[str]:
        """Deliver *envelope* to every queue bound to *routing_key*. Returns the stream entry ids."""
        client = self._require_client()
        queues = self.topology.route(exchange, routing_key)
        if not queues:
            self.logger.warning("No queue bound to %s on exchange %s; message dropped", routing_key, exchange)
            return []

        fields = {"exchange": exchange, "routing_key": routing_key, "envelope": envelope.to_json()}
        entry_ids: List[str] = []
        try:
            for queue in queues:
                stream = self.keys.queue(queue.name)
                entry_ids.append(await stream_publish(client, stream, fields, maxlen=queue.max_length))
                await trim_expired(client, stream, queue.message_ttl_ms)
        except TRANSPORT_ERRORS as exc:
            self.counters.publish_failures += 1
            self._handle_operation_failure(exc)
            raise BrokerTransportError(f"Failed to publish {routing_key} on {exchange}") from exc

        self.counters.published_messages += 1
        self.logger.debug("Published %s to %s/%s", envelope.message_type, exchange, routing_key)
        return entry_ids

    # Request / reply

    def _new_correlation_id(self) -> str:
        correlation_id = uuid.uuid4().hex
        while correlation_id in self._pending:
            correlation_id = uuid.uuid4().hex
        return correlation_id

    async def request(
        self,
        exchange: str,
        routing_key: str,
        payload: Dict[str, Any],
        timeout_ms: float,
        *,
        message_type: str = "request",
    ) -> Dict[str, Any]:
        """Send a request and wait up to *timeout_ms* for the correlated reply body.

        Raises ``BrokerTransportError`` when the request cannot be sent and
        ``BrokerRequestTimeout`` when no matching reply arrives in time.
        """
        client = self._require_client()
        correlation_id = self._new_correlation_id()
        reply_to = self.keys.reply(correlation_id)

        try:
            await ensure_consumer_group(client, reply_to, REPLY_GROUP)
            await ensure_awaitable(client.expire(reply_to, self.settings.reply_ttl_seconds))
        except TRANSPORT_ERRORS as exc:
            self._handle_operation_failure(exc)
            raise BrokerTransportError(f"Failed to open reply destination for {routing_key}") from exc

        handle = self._pending.register(correlation_id, reply_to)
        reader = asyncio.create_task(self._consume_replies(client, handle), name=f"reply-reader-{correlation_id[:8]}")
        envelope = BrokerMessage.request(
            self.settings.source,
            message_type,
            payload,
            correlation_id=correlation_id,
            reply_to=reply_to,
        )
        try:
            await self.publish(exchange, routing_key, envelope)
            self.counters.requests_sent += 1
            return await asyncio.wait_for(handle.future, timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError as exc:
            self.counters.request_timeouts += 1
            self.logger.warning("Request %s on %s timed out after %sms", correlation_id, routing_key, timeout_ms)
            raise BrokerRequestTimeout(correlation_id, timeout_ms) from exc
        finally:
            self._pending.discard(correlation_id)
            await self._cancel_task(reader)
            await self._drain_reply_destination(client, reply_to)

    async def _consume_replies(self, client: Redis, handle: PendingReply) -> None:
        consumer = f"{self.settings.source}-{handle.correlation_id[:8]}"
        while not handle.future.done():
            try:
                response = await ensure_awaitable(
                    client.xreadgroup(
                        REPLY_GROUP,
                        consumer,
                        {handle.reply_to: ">"},
                        count=10,
                        block=self._reply_poll_interval_ms,
                    )
                )
                for entry_id, fields in decode_stream_response(response):
                    await ensure_awaitable(client.xack(handle.reply_to, REPLY_GROUP, entry_id))
                    self._accept_reply(handle, fields)
            except TRANSPORT_ERRORS as exc:
                self.logger.warning("Reply reader for %s failed: %s", handle.correlation_id, exc)
                self._handle_operation_failure(exc)
                self._pending.fail(handle.correlation_id, BrokerTransportError(f"Reply destination unavailable: {exc}"))
                return

    def _accept_reply(self, handle: PendingReply, fields: Dict[str, str]) -> None:
        raw = fields.get("envelope")
        if raw is None:
            self.counters.replies_discarded += 1
            self.logger.warning("Discarding reply without envelope on %s", handle.reply_to)
            return
        try:
            message = BrokerMessage.from_json(raw)
        except EnvelopeDecodeError as exc:
            self.counters.replies_discarded += 1
            self.logger.warning("Discarding malformed reply on %s: %s", handle.reply_to, exc)
            return
        if message.correlation_id != handle.correlation_id:
            self.counters.replies_discarded += 1
            self.logger.debug("Ignoring reply with foreign correlation id %s", message.correlation_id)
            return
        self._pending.resolve(handle.correlation_id, message.payload)

    async def _drain_reply_destination(self, client: Redis, reply_to: str) -> None:
        try:
            response = await ensure_awaitable(
                client.xreadgroup(REPLY_GROUP, f"{self.settings.source}-drain", {reply_to: ">"}, count=100)
            )
            late = decode_stream_response(response)
            for entry_id, _fields in late:
                await ensure_awaitable(client.xack(reply_to, REPLY_GROUP, entry_id))
            if late:
                self.counters.replies_discarded += len(late)
                self.logger.debug("Discarded %d late replies on %s", len(late), reply_to)
            await ensure_awaitable(client.delete(reply_to))
        except TRANSPORT_ERRORS as exc:  # policy_guard: allow-silent-handler
            self.logger.debug("Could not drain reply destination %s: %s", reply_to, exc)

    # Status

    def get_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "state": self._state.value,
            "connected": self.is_connected,
            "state_changed_at": self._state_changed_at,
            "host": self.settings.host,
            "port": self.settings.port,
            "reconnect_attempts": self._reconnection.attempts,
            "max_reconnect_attempts": self.settings.max_reconnect_attempts,
            "pending_requests": len(self._pending),
            "topology_declared": self._topology_declared,
        }
        status.update(asdict(self.counters))
        return status


__all__ = [
    "CONNECTION_LOSS_ERRORS",
    "ClientFactory",
    "GatewayCounters",
    "MessagingGateway",
    "QUEUE_GROUP",
    "REPLY_GROUP",
    "TRANSPORT_ERRORS",
    "create_redis_client",
]
