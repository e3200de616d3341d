"""HTTP endpoint probe."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import aiohttp

from .models import ProbeOutcome, Target

logger = logging.getLogger(__name__)

HTTP_CLIENT_ERRORS = (aiohttp.ClientError, OSError, ValueError)


def is_expected_status(status: int, expected_status: int | None) -> bool:
    if expected_status is not None:
        return status == expected_status
    return status < 400


async def probe_http(target: Target, session: aiohttp.ClientSession) -> ProbeOutcome:
    """Issue one request to *target* and judge the response status."""
    details: Dict[str, Any] = {"url": target.url, "method": target.method}
    auth = aiohttp.BasicAuth(target.auth.username, target.auth.password) if target.auth else None
    timeout = aiohttp.ClientTimeout(total=target.timeout_seconds)

    try:
        async with session.request(target.method, target.url, timeout=timeout, auth=auth) as response:
            status = response.status
    except asyncio.TimeoutError:  # policy_guard: allow-silent-handler
        logger.debug("HTTP probe %s timed out", target.name)
        return ProbeOutcome(False, details, f"Request timed out after {target.timeout_ms}ms")
    except HTTP_CLIENT_ERRORS as exc:  # policy_guard: allow-silent-handler
        logger.debug("HTTP probe %s failed: %s", target.name, exc)
        return ProbeOutcome(False, details, f"{type(exc).__name__}: {exc}")

    details["status_code"] = status
    if is_expected_status(status, target.expected_status):
        return ProbeOutcome(True, details)
    if target.expected_status is not None:
        return ProbeOutcome(False, details, f"HTTP {status} (expected {target.expected_status})")
    return ProbeOutcome(False, details, f"HTTP {status}")
