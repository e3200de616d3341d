"""
Client for the core platform's REST API.

The agent registers with the core when it starts and pushes a health summary
after every full sweep. It can also read the core's own health, metrics and
shared-component status. An unreachable core never stops monitoring: callers
log ``CoreIntegrationError`` and carry on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from .config.settings import CoreIntegrationSettings
from .probes.session import ProbeSessionManager

logger = logging.getLogger(__name__)

HTTP_CLIENT_ERROR_MIN = 400

CORE_REQUEST_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)

CAPABILITIES = (
    "self-monitoring",
    "core-integration",
    "broker-health",
    "database-health",
    "service-health",
)


class CoreIntegrationError(Exception):
    """The core API was unreachable or answered with an error status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def registration_document(settings: CoreIntegrationSettings, service_name: str, timestamp: float) -> Dict[str, Any]:
    return {
        "name": service_name,
        "version": settings.plugin_version,
        "type": "health-monitor",
        "endpoints": {"health": "/health", "metrics": "/metrics", "status": "/status"},
        "capabilities": list(CAPABILITIES),
        "timestamp": timestamp,
    }


class CoreIntegrationClient:
    """Talks to the core API over one shared aiohttp session."""

    def __init__(
        self,
        settings: CoreIntegrationSettings,
        service_name: str,
        *,
        sessions: Optional[ProbeSessionManager] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.service_name = service_name
        self.sessions = sessions or ProbeSessionManager(
            service_name, user_agent=f"{service_name}/{settings.plugin_version}"
        )
        self._clock = clock
        self._headers = {"Content-Type": "application/json"}
        if settings.api_key:
            self._headers["Authorization"] = f"Bearer {settings.api_key}"

        self.connected = False
        self.registered = False
        self.connection_attempts = 0
        self.last_health_check: Optional[float] = None
        self.last_update: Optional[float] = None
        self.update_failures = 0

    async def _request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Issue one request and return the decoded JSON body, or None for non-JSON answers."""
        url = f"{self.settings.api_url}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout_ms / 1000.0)
        session = self.sessions.get_session()
        logger.debug("Core API request: %s %s", method, url)
        try:
            async with session.request(method, url, json=payload, headers=self._headers, timeout=timeout) as response:
                status = response.status
                if status >= HTTP_CLIENT_ERROR_MIN:
                    raise CoreIntegrationError(f"{method} {endpoint} returned HTTP {status}", status)
                if response.content_type != "application/json":
                    return None
                return await response.json()
        except CORE_REQUEST_ERRORS as exc:
            raise CoreIntegrationError(f"{method} {endpoint} failed: {type(exc).__name__}: {exc}") from exc

    async def verify_connection(self) -> Any:
        """Check the core's health endpoint; raises ``CoreIntegrationError`` when it is not reachable."""
        self.connection_attempts += 1
        try:
            body = await self._request("GET", self.settings.health_endpoint)
        except CoreIntegrationError as exc:
            self.connected = False
            logger.error(
                "Failed to verify core connection to %s (attempt %d): %s",
                self.settings.api_url,
                self.connection_attempts,
                exc,
            )
            raise
        self.connected = True
        self.connection_attempts = 0
        self.last_health_check = self._clock()
        logger.info("Core connection verified at %s", self.settings.api_url)
        return body

    async def register(self) -> Any:
        document = registration_document(self.settings, self.service_name, self._clock())
        body = await self._request("POST", self.settings.register_endpoint, document)
        self.registered = True
        logger.info("Registered %s with the core platform", self.service_name)
        return body

    async def update_health_status(
        self,
        status: str,
        metrics: Dict[str, Any],
        details: Optional[Dict[str, Any]] = None,
        alerts: Optional[List[Dict[str, Any]]] = None,
    ) -> Any:
        document = {
            "source": self.service_name,
            "timestamp": self._clock(),
            "status": status,
            "metrics": metrics,
            "alerts": alerts or [],
            "details": details or {},
        }
        try:
            body = await self._request("POST", self.settings.update_endpoint, document)
        except CoreIntegrationError:
            self.update_failures += 1
            raise
        self.last_update = document["timestamp"]
        logger.debug("Pushed %s health status to the core", status)
        return body

    async def get_core_health(self) -> Dict[str, Any]:
        timestamp = self._clock()
        try:
            body = await self._request("GET", self.settings.health_endpoint)
        except CoreIntegrationError as exc:
            logger.warning("Core health unavailable: %s", exc)
            return {"status": "unhealthy", "timestamp": timestamp, "error": str(exc)}
        self.last_health_check = timestamp
        return {"status": "healthy", "timestamp": timestamp, "data": body}

    async def get_core_metrics(self) -> Dict[str, Any]:
        return await self._read("metrics", self.settings.metrics_endpoint)

    async def get_components_status(self) -> Dict[str, Any]:
        return await self._read("components", self.settings.components_endpoint)

    async def _read(self, key: str, endpoint: str) -> Dict[str, Any]:
        timestamp = self._clock()
        try:
            body = await self._request("GET", endpoint)
        except CoreIntegrationError as exc:
            logger.warning("Core %s unavailable: %s", key, exc)
            return {"status": "error", "timestamp": timestamp, "error": str(exc), key: None}
        return {"status": "success", "timestamp": timestamp, key: body}

    def get_integration_status(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "registered": self.registered,
            "api_url": self.settings.api_url,
            "connection_attempts": self.connection_attempts,
            "last_health_check": self.last_health_check,
            "last_update": self.last_update,
            "update_failures": self.update_failures,
        }

    async def close(self) -> None:
        self.connected = False
        await self.sessions.close()


__all__ = [
    "CAPABILITIES",
    "CoreIntegrationClient",
    "CoreIntegrationError",
    "registration_document",
]
