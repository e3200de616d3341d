"""Read-only status projection and control hooks for an external REST facade."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .orchestrator_helpers.alert_classifier import overall_status

if TYPE_CHECKING:
    from .alerting.dispatcher import AlertDispatcher
    from .core_integration import CoreIntegrationClient
    from .messaging.gateway import MessagingGateway
    from .orchestrator import HealthOrchestrator
    from .self_monitor import SelfMonitor


class StatusProjection:
    """
    Everything a status endpoint needs, in plain dictionaries.

    The projection never mutates monitoring state except through the explicit
    control hooks (``pause``, ``resume``, ``force_check``, ``reset``).
    """

    def __init__(
        self,
        service_name: str,
        orchestrator: "HealthOrchestrator",
        gateway: "MessagingGateway",
        dispatcher: "AlertDispatcher",
        self_monitor: Optional["SelfMonitor"] = None,
        clock: Callable[[], float] = time.time,
        core: Optional["CoreIntegrationClient"] = None,
    ) -> None:
        self.service_name = service_name
        self.orchestrator = orchestrator
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.self_monitor = self_monitor
        self.core = core
        self._clock = clock

    def health(self) -> Dict[str, Any]:
        results = self.orchestrator.get_results()
        self_health = "unknown"
        if self.self_monitor is not None:
            self_health = self.self_monitor.get_status()["health"]
        return {
            "service": self.service_name,
            "status": overall_status(results),
            "orchestrator_state": self.orchestrator.state.value,
            "broker_state": self.gateway.state.value,
            "self_health": self_health,
            "timestamp": self._clock(),
        }

    def snapshot(self, *, alert_limit: int = 10) -> Dict[str, Any]:
        self_monitoring: Optional[Dict[str, Any]] = None
        if self.self_monitor is not None:
            self_monitoring = {
                "status": self.self_monitor.get_status(),
                "current": self.self_monitor.get_current_metrics(),
                "alerts": self.self_monitor.get_recent_alerts(alert_limit),
            }
        return {
            "health": self.health(),
            "orchestrator": self.orchestrator.get_status(),
            "results": [result.to_dict() for result in self.orchestrator.get_results()],
            "alerts": [alert.to_dict() for alert in self.dispatcher.history.recent(alert_limit)],
            "broker": self.gateway.get_status(),
            "self_monitoring": self_monitoring,
            "core_integration": self.core.get_integration_status() if self.core is not None else None,
        }

    async def pause(self) -> Dict[str, Any]:
        await self.orchestrator.pause()
        return self.health()

    async def resume(self) -> Dict[str, Any]:
        await self.orchestrator.resume()
        return self.health()

    async def force_check(self) -> Dict[str, Any]:
        summary = await self.orchestrator.run_full_check()
        return summary.to_dict()

    def reset(self) -> Dict[str, Any]:
        self.orchestrator.reset()
        return self.health()


__all__ = ["StatusProjection"]
