"""
Centralized logging configuration.

``setup_logging`` configures the root logger once per process with:
- Console output on stdout
- File output to ``<log dir>/<service_name>.log``, truncated on start unless
  ``LOG_APPEND=1``
- Third-party loggers quieted to WARNING
"""

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Optional

from .config.runtime import env_bool, env_str

_config_lock = threading.Lock()
_MODULE_LOGGER = logging.getLogger(__name__)
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_NOISY_LOGGERS = ("asyncio", "aiohttp", "aiohttp.access", "redis", "redis.connection", "redis.asyncio", "urllib3")


def _close_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        try:
            handler.close()
        except OSError as exc:  # Best-effort cleanup operation  # policy_guard: allow-silent-handler
            _MODULE_LOGGER.debug("Handler close failed: %s", exc)
    logger.handlers = []


def _already_configured(root_logger: logging.Logger, service_name: Optional[str]) -> bool:
    if not root_logger.handlers:
        return False
    has_console = any(
        isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler)
        for handler in root_logger.handlers
    )
    has_file = not service_name or any(isinstance(handler, logging.FileHandler) for handler in root_logger.handlers)
    return has_console and has_file


def _build_console_handler(level: int) -> logging.Handler:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    console_handler.setLevel(level)
    return console_handler


def _build_file_handler(service_name: Optional[str], log_dir: Optional[Path]) -> Optional[logging.Handler]:
    if not service_name:
        return None

    configured_dir = env_str("LOG_DIR")
    logs_dir = log_dir or (Path(configured_dir).expanduser() if configured_dir else Path("logs"))
    logs_dir.mkdir(parents=True, exist_ok=True)
    file_mode = "a" if env_bool("LOG_APPEND", or_value=False) else "w"

    file_handler = logging.handlers.WatchedFileHandler(logs_dir / f"{service_name}.log", mode=file_mode)
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    file_handler.setLevel(logging.INFO)
    return file_handler


def _suppress_noisy_third_parties() -> None:
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or env_str("LOG_LEVEL", "INFO") or "INFO").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {name!r}")
    return resolved


def setup_logging(service_name: Optional[str] = None, *, level: Optional[str] = None, log_dir: Optional[Path] = None) -> None:
    """Configure logging for the agent"""

    with _config_lock:
        root_logger = logging.getLogger()
        if _already_configured(root_logger, service_name):
            return

        _close_handlers(root_logger)
        resolved_level = _resolve_level(level)
        root_logger.addHandler(_build_console_handler(resolved_level))

        file_handler = _build_file_handler(service_name, log_dir)
        if file_handler:
            root_logger.addHandler(file_handler)

        root_logger.setLevel(resolved_level)
        _suppress_noisy_third_parties()


__all__ = ["setup_logging"]
