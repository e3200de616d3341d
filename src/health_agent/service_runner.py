from __future__ import annotations

"""Run the agent as a long-lived service with signal-driven shutdown."""

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional

from .logging_config import setup_logging

logger = logging.getLogger(__name__)

ServiceMain = Callable[[asyncio.Event], Awaitable[None]]

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_shutdown_handlers(stop_event: asyncio.Event, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
    """Set *stop_event* on SIGINT/SIGTERM. Returns False where the loop cannot handle signals."""
    loop = loop or asyncio.get_running_loop()
    try:
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, _request_shutdown, stop_event, sig)
    except (NotImplementedError, RuntimeError):  # policy_guard: allow-silent-handler
        logger.debug("Signal handlers unavailable on this platform; relying on KeyboardInterrupt")
        return False
    return True


def _request_shutdown(stop_event: asyncio.Event, sig: signal.Signals) -> None:
    if not stop_event.is_set():
        logger.info("Received %s, shutting down", signal.Signals(sig).name)
    stop_event.set()


async def _serve(main: ServiceMain) -> None:
    stop_event = asyncio.Event()
    install_shutdown_handlers(stop_event)
    await main(stop_event)


def run_async_service(
    main: ServiceMain,
    *,
    service_name: str,
    configure_logging: bool = True,
    shutdown_message: Optional[str] = None,
) -> None:
    """Run *main* until a shutdown signal arrives.

    Args:
        main: Coroutine function receiving the event that is set on shutdown.
        service_name: Identifier used for logging configuration.
        configure_logging: Whether to configure logging via ``setup_logging``.
        shutdown_message: Optional custom message when interrupted.
    """

    if configure_logging:
        setup_logging(service_name)

    try:
        asyncio.run(_serve(main))
    except KeyboardInterrupt:  # policy_guard: allow-silent-handler
        logger.info(shutdown_message or f"{service_name} interrupted by user")


__all__ = ["install_shutdown_handlers", "run_async_service"]
