"""Composition root: wires the gateway, self-monitor, orchestrator and status projection."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .alerting.dispatcher import AlertDispatcher
from .alerting.history import AlertHistory
from .alerting.throttle import AlertThrottle
from .config.settings import AgentConfig
from .core_integration import CoreIntegrationClient, CoreIntegrationError
from .messaging.errors import BrokerTransportError
from .messaging.gateway import ClientFactory, MessagingGateway, create_redis_client
from .orchestrator import HealthOrchestrator
from .probes import ProbeRegistry
from .self_monitor import SelfMonitor
from .status import StatusProjection

logger = logging.getLogger(__name__)


class HealthAgent:
    """The running agent. ``start``/``stop`` are idempotent."""

    def __init__(
        self,
        config: AgentConfig,
        *,
        client_factory: ClientFactory = create_redis_client,
        probes: Optional[ProbeRegistry] = None,
    ) -> None:
        self.config = config
        self.gateway = MessagingGateway(config.broker, client_factory=client_factory)

        throttle = None
        if config.alerting.throttle_window_seconds:
            throttle = AlertThrottle(config.alerting.throttle_window_seconds, config.alerting.throttle_max_alerts)
        self.dispatcher = AlertDispatcher(self.gateway, AlertHistory(config.alerting.max_alerts), throttle)

        self.self_monitor: Optional[SelfMonitor] = None
        if config.self_monitoring.enabled:
            self.self_monitor = SelfMonitor(config.self_monitoring, alert_callback=self.dispatcher.dispatch)

        self.core: Optional[CoreIntegrationClient] = None
        if config.core.enabled:
            self.core = CoreIntegrationClient(config.core, config.service_name)

        self.orchestrator = HealthOrchestrator(
            config,
            self.gateway,
            self.dispatcher,
            self_monitor=self.self_monitor,
            probes=probes,
            core=self.core,
        )
        self.status = StatusProjection(
            config.service_name,
            self.orchestrator,
            self.gateway,
            self.dispatcher,
            self.self_monitor,
            core=self.core,
        )
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("%s already running", self.config.service_name)
            return
        logger.info("Starting %s", self.config.service_name)
        await self._connect_broker()
        await self._connect_core()
        if self.self_monitor is not None:
            await self.self_monitor.start()
        await self.orchestrator.start()
        self._running = True
        logger.info("%s started", self.config.service_name)

    async def _connect_broker(self) -> None:
        try:
            await self.gateway.connect()
            await self.gateway.declare_topology()
        except BrokerTransportError as exc:
            # Probing goes on without a broker; the gateway keeps retrying.
            logger.error("Broker unavailable at startup: %s", exc)
            self.gateway.schedule_reconnect(str(exc))

    async def _connect_core(self) -> None:
        if self.core is None:
            return
        try:
            await self.core.verify_connection()
            await self.core.register()
        except CoreIntegrationError as exc:
            logger.warning("Core integration unavailable, continuing without it: %s", exc)

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping %s", self.config.service_name)
        self._running = False
        await self.orchestrator.stop()
        if self.self_monitor is not None:
            await self.self_monitor.stop()
        await self.gateway.close()
        if self.core is not None:
            await self.core.close()
        logger.info("%s stopped", self.config.service_name)

    async def run_until(self, stop_event: asyncio.Event) -> None:
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()


__all__ = ["HealthAgent"]
