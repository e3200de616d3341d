"""Configuration contract and environment helpers."""

from .errors import ConfigurationError
from .runtime import env_bool, env_float, env_int, env_str, load_json_document, resolve_config_path
from .settings import (
    AgentConfig,
    AlertingSettings,
    BrokerSettings,
    CoreIntegrationSettings,
    DatabaseCheckSettings,
    MonitoringSettings,
    SelfMonitoringSettings,
    ThresholdSettings,
    build_agent_config,
    load_agent_config,
)

__all__ = [
    "AgentConfig",
    "AlertingSettings",
    "BrokerSettings",
    "CoreIntegrationSettings",
    "ConfigurationError",
    "DatabaseCheckSettings",
    "MonitoringSettings",
    "SelfMonitoringSettings",
    "ThresholdSettings",
    "build_agent_config",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "load_agent_config",
    "load_json_document",
    "resolve_config_path",
]
