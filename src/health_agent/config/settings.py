"""
Agent configuration contract.

The agent is driven by one explicit, versioned JSON document (``config/agent.json``
unless ``HEALTH_AGENT_CONFIG`` points elsewhere). Broker connection details and
the core API endpoint can be overridden from the environment. Anything malformed raises
``ConfigurationError`` at load time; nothing falls back to defaults silently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..probes.models import BasicAuthCredentials, Target, TargetKind
from .errors import ConfigurationError
from .runtime import env_bool, env_int, env_str, load_json_document, resolve_config_path

logger = logging.getLogger(__name__)

SUPPORTED_CONFIG_VERSIONS = frozenset({1})
_KIND_ALIASES = {"http": TargetKind.HTTP, "https": TargetKind.HTTP, "tcp": TargetKind.TCP}
_HTTP_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "OPTIONS"})


@dataclass(frozen=True)
class BrokerSettings:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    ssl: bool = False
    key_prefix: str = "broker"
    source: str = "health-agent"
    socket_connect_timeout_seconds: float = 5.0
    health_check_interval_seconds: float = 10.0
    reconnect_base_delay_seconds: float = 5.0
    max_reconnect_attempts: int = 10
    reply_ttl_seconds: int = 60


@dataclass(frozen=True)
class MonitoringSettings:
    health_check_interval_ms: int = 30_000
    metrics_interval_ms: int = 15_000
    run_initial_check: bool = True
    probe_deadline_grace_ms: int = 1_000


@dataclass(frozen=True)
class ThresholdSettings:
    memory_mb: float = 500.0
    cpu_percent: float = 80.0
    event_loop_delay_ms: float = 100.0


@dataclass(frozen=True)
class SelfMonitoringSettings:
    enabled: bool = True
    interval_ms: int = 15_000
    event_loop_sample_ms: int = 100
    retention_seconds: float = 3_600.0
    max_alerts: int = 100
    thresholds: ThresholdSettings = field(default_factory=ThresholdSettings)


@dataclass(frozen=True)
class DatabaseCheckSettings:
    enabled: bool = True
    interval_ms: int = 30_000
    timeout_ms: int = 5_000
    exchange: str = "system"
    routing_key: str = "database.health.request"
    queries: Mapping[str, str] = field(default_factory=lambda: {"basic": "SELECT 1"})


@dataclass(frozen=True)
class AlertingSettings:
    max_alerts: int = 100
    throttle_window_seconds: Optional[float] = None
    throttle_max_alerts: int = 10


@dataclass(frozen=True)
class CoreIntegrationSettings:
    enabled: bool = False
    api_url: str = "http://localhost:4001"
    api_key: Optional[str] = None
    timeout_ms: int = 30_000
    plugin_version: str = "1.0.0"
    health_endpoint: str = "/health"
    metrics_endpoint: str = "/metrics"
    components_endpoint: str = "/api/components/status"
    register_endpoint: str = "/api/plugins/register"
    update_endpoint: str = "/api/health/update"


@dataclass(frozen=True)
class AgentConfig:
    config_version: int
    service_name: str
    broker: BrokerSettings
    monitoring: MonitoringSettings
    self_monitoring: SelfMonitoringSettings
    database: DatabaseCheckSettings
    alerting: AlertingSettings
    targets: Tuple[Target, ...]
    core: CoreIntegrationSettings = field(default_factory=CoreIntegrationSettings)

    def target(self, name: str) -> Target:
        for candidate in self.targets:
            if candidate.name == name:
                return candidate
        raise KeyError(name)


def _section(payload: Mapping[str, Any], name: str) -> Dict[str, Any]:
    raw = payload.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError.invalid_value(name, raw, "Section must be a JSON object")
    return raw


def _number(section: Mapping[str, Any], key: str, default, context: str, *, allow_zero: bool = False):
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError.invalid_value(f"{context}.{key}", value, "Expected a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError.invalid_value(f"{context}.{key}", value, "Must be positive")
    return value


def _integer(section: Mapping[str, Any], key: str, default: int, context: str) -> int:
    value = _number(section, key, default, context)
    if isinstance(value, float) and not value.is_integer():
        raise ConfigurationError.invalid_value(f"{context}.{key}", value, "Expected an integer")
    return int(value)


def _flag(section: Mapping[str, Any], key: str, default: bool, context: str) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError.invalid_value(f"{context}.{key}", value, "Expected true or false")
    return value


def _text(section: Mapping[str, Any], key: str, default: Optional[str], context: str) -> Optional[str]:
    value = section.get(key, default)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError.invalid_value(f"{context}.{key}", value, "Expected a non-empty string")
    return value.strip()


def _parse_broker(section: Mapping[str, Any]) -> BrokerSettings:
    defaults = BrokerSettings()
    host = env_str("BROKER_HOST", or_value=_text(section, "host", defaults.host, "broker"))
    port = env_int("BROKER_PORT", or_value=_integer(section, "port", defaults.port, "broker"))
    db = env_int("BROKER_DB", or_value=int(_number(section, "db", defaults.db, "broker", allow_zero=True)))
    password = env_str("BROKER_PASSWORD", or_value=section.get("password"))
    ssl_flag = env_bool("BROKER_SSL", or_value=_flag(section, "ssl", defaults.ssl, "broker"))

    return BrokerSettings(
        host=str(host),
        port=int(port),
        db=int(db),
        password=password,
        ssl=bool(ssl_flag),
        key_prefix=_text(section, "key_prefix", defaults.key_prefix, "broker") or defaults.key_prefix,
        source=_text(section, "source", defaults.source, "broker") or defaults.source,
        socket_connect_timeout_seconds=float(
            _number(section, "socket_connect_timeout_seconds", defaults.socket_connect_timeout_seconds, "broker")
        ),
        health_check_interval_seconds=float(
            _number(section, "health_check_interval_seconds", defaults.health_check_interval_seconds, "broker")
        ),
        reconnect_base_delay_seconds=float(
            _number(section, "reconnect_base_delay_seconds", defaults.reconnect_base_delay_seconds, "broker", allow_zero=True)
        ),
        max_reconnect_attempts=_integer(section, "max_reconnect_attempts", defaults.max_reconnect_attempts, "broker"),
        reply_ttl_seconds=_integer(section, "reply_ttl_seconds", defaults.reply_ttl_seconds, "broker"),
    )


def _parse_monitoring(section: Mapping[str, Any]) -> MonitoringSettings:
    defaults = MonitoringSettings()
    return MonitoringSettings(
        health_check_interval_ms=_integer(section, "health_check_interval_ms", defaults.health_check_interval_ms, "monitoring"),
        metrics_interval_ms=_integer(section, "metrics_interval_ms", defaults.metrics_interval_ms, "monitoring"),
        run_initial_check=_flag(section, "run_initial_check", defaults.run_initial_check, "monitoring"),
        probe_deadline_grace_ms=_integer(section, "probe_deadline_grace_ms", defaults.probe_deadline_grace_ms, "monitoring"),
    )


def _parse_thresholds(section: Mapping[str, Any]) -> ThresholdSettings:
    defaults = ThresholdSettings()
    context = "self_monitoring.thresholds"
    return ThresholdSettings(
        memory_mb=float(_number(section, "memory_mb", defaults.memory_mb, context)),
        cpu_percent=float(_number(section, "cpu_percent", defaults.cpu_percent, context)),
        event_loop_delay_ms=float(_number(section, "event_loop_delay_ms", defaults.event_loop_delay_ms, context)),
    )


def _parse_self_monitoring(section: Mapping[str, Any]) -> SelfMonitoringSettings:
    defaults = SelfMonitoringSettings()
    context = "self_monitoring"
    return SelfMonitoringSettings(
        enabled=_flag(section, "enabled", defaults.enabled, context),
        interval_ms=_integer(section, "interval_ms", defaults.interval_ms, context),
        event_loop_sample_ms=_integer(section, "event_loop_sample_ms", defaults.event_loop_sample_ms, context),
        retention_seconds=float(_number(section, "retention_seconds", defaults.retention_seconds, context)),
        max_alerts=_integer(section, "max_alerts", defaults.max_alerts, context),
        thresholds=_parse_thresholds(_section(section, "thresholds")),
    )


def _parse_database(section: Mapping[str, Any]) -> DatabaseCheckSettings:
    defaults = DatabaseCheckSettings()
    context = "database"
    queries_raw = section.get("queries", dict(defaults.queries))
    if not isinstance(queries_raw, dict) or not queries_raw:
        raise ConfigurationError.invalid_value("database.queries", queries_raw, "Expected a non-empty object")
    queries: Dict[str, str] = {}
    for query_id, query in queries_raw.items():
        if not isinstance(query, str) or not query.strip():
            raise ConfigurationError.invalid_value(f"database.queries.{query_id}", query, "Expected SQL text")
        queries[str(query_id)] = query.strip()

    return DatabaseCheckSettings(
        enabled=_flag(section, "enabled", defaults.enabled, context),
        interval_ms=_integer(section, "interval_ms", defaults.interval_ms, context),
        timeout_ms=_integer(section, "timeout_ms", defaults.timeout_ms, context),
        exchange=_text(section, "exchange", defaults.exchange, context) or defaults.exchange,
        routing_key=_text(section, "routing_key", defaults.routing_key, context) or defaults.routing_key,
        queries=queries,
    )


def _parse_alerting(section: Mapping[str, Any]) -> AlertingSettings:
    defaults = AlertingSettings()
    window = section.get("throttle_window_seconds")
    if window is not None:
        window = float(_number(section, "throttle_window_seconds", None, "alerting"))
    return AlertingSettings(
        max_alerts=_integer(section, "max_alerts", defaults.max_alerts, "alerting"),
        throttle_window_seconds=window,
        throttle_max_alerts=_integer(section, "throttle_max_alerts", defaults.throttle_max_alerts, "alerting"),
    )


def _endpoint(section: Mapping[str, Any], key: str, default: str) -> str:
    value = _text(section, key, default, "core") or default
    if not value.startswith("/"):
        raise ConfigurationError.invalid_value(f"core.{key}", value, "Endpoints must start with '/'")
    return value


def _parse_core(section: Mapping[str, Any]) -> CoreIntegrationSettings:
    defaults = CoreIntegrationSettings()
    api_url = env_str("CORE_API_URL", or_value=_text(section, "api_url", defaults.api_url, "core"))
    if not str(api_url).lower().startswith(("http://", "https://")):
        raise ConfigurationError.invalid_value("core.api_url", api_url, "Expected an http(s) URL")
    api_key_env = section.get("api_key_env")
    if api_key_env:
        api_key = env_str(str(api_key_env), required=True)
    else:
        api_key = env_str("CORE_API_KEY", or_value=section.get("api_key"))
    timeout_ms = env_int("CORE_TIMEOUT_MS", or_value=_integer(section, "timeout_ms", defaults.timeout_ms, "core"))

    return CoreIntegrationSettings(
        enabled=_flag(section, "enabled", defaults.enabled, "core"),
        api_url=str(api_url).rstrip("/"),
        api_key=api_key or None,
        timeout_ms=int(timeout_ms),
        plugin_version=_text(section, "plugin_version", defaults.plugin_version, "core") or defaults.plugin_version,
        health_endpoint=_endpoint(section, "health_endpoint", defaults.health_endpoint),
        metrics_endpoint=_endpoint(section, "metrics_endpoint", defaults.metrics_endpoint),
        components_endpoint=_endpoint(section, "components_endpoint", defaults.components_endpoint),
        register_endpoint=_endpoint(section, "register_endpoint", defaults.register_endpoint),
        update_endpoint=_endpoint(section, "update_endpoint", defaults.update_endpoint),
    )


def _parse_auth(raw: Any, context: str) -> Optional[BasicAuthCredentials]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigurationError.invalid_value(f"{context}.auth", raw, "Expected an object")
    username = _text(raw, "username", None, f"{context}.auth")
    if username is None:
        raise ConfigurationError.missing_value(f"{context}.auth.username")
    password_env = raw.get("password_env")
    if password_env:
        password = env_str(str(password_env), required=True)
    else:
        password = raw.get("password", "")
    return BasicAuthCredentials(username=username, password=str(password))


def parse_target(raw: Any, index: int) -> Target:
    """Build a ``Target`` from one entry of the ``targets`` array."""
    context = f"targets[{index}]"
    if not isinstance(raw, dict):
        raise ConfigurationError.invalid_value(context, raw, "Expected an object")

    name = _text(raw, "name", None, context)
    if name is None:
        raise ConfigurationError.missing_value(f"{context}.name")

    kind_raw = str(raw.get("kind", raw.get("type", ""))).lower()
    kind = _KIND_ALIASES.get(kind_raw)
    if kind is None:
        raise ConfigurationError.invalid_value(f"{context}.kind", kind_raw, "Expected 'http' or 'tcp'")

    timeout_ms = _integer(raw, "timeout_ms", 5_000, context)
    interval_ms = _integer(raw, "interval_ms", 30_000, context)
    critical = _flag(raw, "critical", False, context)
    auth = _parse_auth(raw.get("auth"), context)

    if kind is TargetKind.HTTP:
        url = _text(raw, "url", None, context)
        if url is None or not url.lower().startswith(("http://", "https://")):
            raise ConfigurationError.invalid_value(f"{context}.url", raw.get("url"), "HTTP targets need an http(s) URL")
        method = str(raw.get("method", "GET")).upper()
        if method not in _HTTP_METHODS:
            raise ConfigurationError.invalid_value(f"{context}.method", method)
        expected_status = raw.get("expected_status")
        if expected_status is not None:
            expected_status = _integer(raw, "expected_status", 200, context)
        return Target(
            name=name,
            kind=kind,
            timeout_ms=timeout_ms,
            interval_ms=interval_ms,
            critical=critical,
            url=url,
            method=method,
            expected_status=expected_status,
            auth=auth,
        )

    host = _text(raw, "host", None, context)
    if host is None:
        raise ConfigurationError.missing_value(f"{context}.host")
    port = _integer(raw, "port", 0, context)
    if port > 65535:
        raise ConfigurationError.invalid_value(f"{context}.port", port, "Port out of range")
    return Target(
        name=name,
        kind=kind,
        timeout_ms=timeout_ms,
        interval_ms=interval_ms,
        critical=critical,
        host=host,
        port=port,
        auth=auth,
    )


def parse_targets(raw_targets: Any) -> Tuple[Target, ...]:
    if raw_targets is None:
        raw_targets = []
    if not isinstance(raw_targets, list):
        raise ConfigurationError.invalid_value("targets", raw_targets, "Expected an array")

    targets: List[Target] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_targets):
        target = parse_target(raw, index)
        if target.name in seen:
            raise ConfigurationError.duplicate_target(target.name)
        seen.add(target.name)
        targets.append(target)
    return tuple(targets)


def build_agent_config(payload: Mapping[str, Any]) -> AgentConfig:
    """Validate a decoded configuration document and build ``AgentConfig``."""

    if "config_version" not in payload:
        raise ConfigurationError.missing_value("config_version")
    version = payload["config_version"]
    if isinstance(version, bool) or not isinstance(version, int) or version not in SUPPORTED_CONFIG_VERSIONS:
        raise ConfigurationError.unsupported_version(version, SUPPORTED_CONFIG_VERSIONS)

    agent_section = _section(payload, "agent")
    service_name = _text(agent_section, "service_name", "health-agent", "agent") or "health-agent"

    return AgentConfig(
        config_version=int(version),
        service_name=service_name,
        broker=_parse_broker(_section(payload, "broker")),
        monitoring=_parse_monitoring(_section(payload, "monitoring")),
        self_monitoring=_parse_self_monitoring(_section(payload, "self_monitoring")),
        database=_parse_database(_section(payload, "database")),
        alerting=_parse_alerting(_section(payload, "alerting")),
        targets=parse_targets(payload.get("targets")),
        core=_parse_core(_section(payload, "core")),
    )


def load_agent_config(path: Optional[Path] = None) -> AgentConfig:
    """Load and validate the agent configuration document."""

    config_path = resolve_config_path(path)
    payload = load_json_document(config_path)
    config = build_agent_config(payload)
    logger.info(
        "Loaded agent configuration from %s (%d targets, version %s)",
        config_path,
        len(config.targets),
        config.config_version,
    )
    return config


__all__ = [
    "AgentConfig",
    "AlertingSettings",
    "BrokerSettings",
    "CoreIntegrationSettings",
    "DatabaseCheckSettings",
    "MonitoringSettings",
    "SUPPORTED_CONFIG_VERSIONS",
    "SelfMonitoringSettings",
    "ThresholdSettings",
    "build_agent_config",
    "load_agent_config",
    "parse_target",
    "parse_targets",
]
