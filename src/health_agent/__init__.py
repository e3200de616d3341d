"""Pluggable health-monitoring agent."""

from .agent import HealthAgent
from .config import AgentConfig, ConfigurationError, load_agent_config
from .connection_state import ConnectionState
from .core_integration import CoreIntegrationClient, CoreIntegrationError
from .orchestrator import HealthOrchestrator, OrchestratorState
from .self_monitor import SelfMonitor
from .status import StatusProjection

__version__ = "1.0.0"

__all__ = [
    "AgentConfig",
    "ConfigurationError",
    "ConnectionState",
    "CoreIntegrationClient",
    "CoreIntegrationError",
    "HealthAgent",
    "HealthOrchestrator",
    "OrchestratorState",
    "SelfMonitor",
    "StatusProjection",
    "load_agent_config",
]
