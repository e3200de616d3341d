"""TCP port probe."""

from __future__ import annotations

import asyncio
import logging

from .models import ProbeOutcome, Target

logger = logging.getLogger(__name__)


async def probe_tcp(target: Target) -> ProbeOutcome:
    """Open a connection to ``host:port`` and close it straight away."""
    details = {"host": target.host, "port": target.port}
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(target.host, target.port),
            timeout=target.timeout_seconds,
        )
    except asyncio.TimeoutError:  # policy_guard: allow-silent-handler
        return ProbeOutcome(False, details, f"Connection timed out after {target.timeout_ms}ms")
    except OSError as exc:  # policy_guard: allow-silent-handler
        logger.debug("TCP probe %s failed: %s", target.name, exc)
        return ProbeOutcome(False, details, f"Connection failed: {exc}")

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:  # policy_guard: allow-silent-handler
        logger.debug("Error while closing probe socket for %s", target.name)
    return ProbeOutcome(True, details)
