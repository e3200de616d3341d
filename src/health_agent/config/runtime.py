from __future__ import annotations

"""Runtime helpers for working with environment-backed configuration."""


import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}

_DOTENV_CANDIDATES = (Path(".env"), Path.home() / ".health_agent.env")

_DEFAULT_VALUES: dict[str, str] | None = None


def _parse_dotenv(path: Path) -> Dict[str, str]:
    """Read KEY=VALUE pairs from a .env-style file."""
    if not path.exists():
        return {}

    values: Dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigurationError.load_failed("dotenv defaults", str(path)) from exc

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :]
        key, _, value = stripped.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            values[key] = value
    return values


def _load_default_values() -> dict[str, str]:
    """Load fallback values from .env-style files, first file wins per key."""
    global _DEFAULT_VALUES
    if _DEFAULT_VALUES is not None:
        return _DEFAULT_VALUES

    defaults: dict[str, str] = {}
    for path in _DOTENV_CANDIDATES:
        for key, value in _parse_dotenv(path).items():
            defaults.setdefault(key, value)

    _DEFAULT_VALUES = defaults
    return defaults


def reset_default_values() -> None:
    """Forget cached .env defaults so the next lookup re-reads them."""
    global _DEFAULT_VALUES
    _DEFAULT_VALUES = None


def env_str(
    name: str,
    or_value: str | None = None,
    *,
    required: bool = False,
    allow_blank: bool = False,
) -> str | None:
    """Fetch an environment variable as a string with validation."""

    value = os.getenv(name)
    if value is not None:
        value = value.strip()

    if value is None or (not allow_blank and value == ""):
        configured_default = _load_default_values().get(name)
        if configured_default is not None:
            value = configured_default.strip()

    if value is None or (not allow_blank and value == ""):
        if required:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value
    return value


def env_int(name: str, or_value: int | None = None, *, required: bool = False) -> int | None:
    """Fetch an environment variable and coerce it to ``int``."""

    raw = env_str(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be an integer (got {raw!r})") from exc


def env_float(name: str, or_value: float | None = None, *, required: bool = False) -> float | None:
    """Fetch an environment variable and coerce it to ``float``."""

    raw = env_str(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {name!r} must be a float (got {raw!r})") from exc


def env_bool(name: str, or_value: bool | None = None, *, required: bool = False) -> bool | None:
    """Fetch an environment variable and coerce it to ``bool``."""

    raw = env_str(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError(f"Required environment variable {name!r} is not set")
        return or_value

    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Environment variable {name!r} must be a boolean (got {raw!r})")


def load_json_document(path: Path) -> Dict[str, Any]:
    """Load a JSON object from *path*, raising ``ConfigurationError`` on any problem."""

    if not path.exists():
        raise ConfigurationError(f"Configuration file {path} does not exist")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError.load_failed("JSON config", str(path)) from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"JSON config {path} must contain an object at the top level")
    return data


def resolve_config_path(explicit: Optional[Path] = None) -> Path:
    """Pick the agent config file: explicit argument, then HEALTH_AGENT_CONFIG, then config/agent.json."""

    if explicit is not None:
        return explicit.expanduser()
    env_value = env_str("HEALTH_AGENT_CONFIG")
    if env_value:
        return Path(env_value).expanduser()
    return Path("config") / "agent.json"


__all__ = [
    "ConfigurationError",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "load_json_document",
    "reset_default_values",
    "resolve_config_path",
]
