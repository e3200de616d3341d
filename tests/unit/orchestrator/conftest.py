"""Shared fixtures for orchestrator tests."""

from __future__ import annotations

import pytest
import pytest_asyncio

from health_agent.alerting.dispatcher import AlertDispatcher
from health_agent.alerting.history import AlertHistory
from health_agent.config.settings import AgentConfig
from health_agent.messaging.gateway import MessagingGateway
from health_agent.orchestrator import HealthOrchestrator
from tests.helpers.orchestrator_builders import ScriptedProbes, make_config


@pytest.fixture
def scripted_probes() -> ScriptedProbes:
    return ScriptedProbes()


@pytest_asyncio.fixture
async def connected_gateway(fake_redis_factory):
    config = make_config([])
    gateway = MessagingGateway(config.broker, client_factory=fake_redis_factory, reply_poll_interval_ms=10)
    await gateway.connect()
    await gateway.declare_topology()
    yield gateway
    await gateway.close()


@pytest.fixture
def build_orchestrator(scripted_probes):
    """Factory wiring an orchestrator around a gateway and scripted probes."""

    def _build(config: AgentConfig, gateway: MessagingGateway, core=None) -> HealthOrchestrator:
        dispatcher = AlertDispatcher(gateway, AlertHistory(config.alerting.max_alerts))
        return HealthOrchestrator(config, gateway, dispatcher, probes=scripted_probes.registry(), core=core)

    return _build
