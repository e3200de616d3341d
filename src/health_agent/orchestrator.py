"""
Health-check orchestrator.

Schedules target probes, full sweeps, database checks and metrics reports;
aggregates results, classifies alerts and publishes everything through the
messaging gateway. A degraded or failed gateway never stops probing: publish
failures are logged and the cycle carries on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .alerting.dispatcher import AlertDispatcher
from .alerting.models import Alert, AlertSeverity
from .config.settings import AgentConfig
from .core_integration import CoreIntegrationClient, CoreIntegrationError
from .messaging.errors import BrokerTransportError
from .messaging.gateway import MessagingGateway
from .messaging.publishers import publish_health_metrics, publish_system_status
from .orchestrator_helpers.alert_classifier import classify_results, overall_status
from .orchestrator_helpers.database_check import DatabaseCheckResult, DatabaseHealthChecker
from .orchestrator_helpers.result_store import ResultStore
from .orchestrator_helpers.scheduler import RecurringTimer, interval_to_schedule
from .orchestrator_helpers.statistics import CheckStatistics
from .orchestrator_helpers.sweep import SweepSummary, error_result, summarize, sweep_report
from .probes import ProbeRegistry, ProbeSessionManager
from .probes.models import CheckResult, CheckStatus, Target

if TYPE_CHECKING:
    from .self_monitor import SelfMonitor

logger = logging.getLogger(__name__)

PROBE_ERRORS = (OSError, RuntimeError, ValueError, TypeError, LookupError)


class OrchestratorState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class HealthOrchestrator:
    """Drives every recurring check of the agent."""

    def __init__(
        self,
        config: AgentConfig,
        gateway: MessagingGateway,
        dispatcher: AlertDispatcher,
        *,
        self_monitor: Optional["SelfMonitor"] = None,
        probes: Optional[ProbeRegistry] = None,
        sessions: Optional[ProbeSessionManager] = None,
        core: Optional[CoreIntegrationClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.targets: List[Target] = list(config.targets)
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.self_monitor = self_monitor
        self.core = core
        self.sessions = sessions if sessions is not None else ProbeSessionManager(config.service_name)
        self.probes = probes if probes is not None else ProbeRegistry(self.sessions)
        self.results = ResultStore()
        self.statistics = CheckStatistics()
        self.database = DatabaseHealthChecker(gateway, config.database, clock=clock)

        self._clock = clock
        self._state = OrchestratorState.STOPPED
        self._started_at: Optional[float] = None
        self._timers: Dict[str, RecurringTimer] = {}
        self._deadline_grace_seconds = config.monitoring.probe_deadline_grace_ms / 1000.0

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is OrchestratorState.RUNNING

    @property
    def is_paused(self) -> bool:
        return self._state is OrchestratorState.PAUSED

    # Lifecycle

    async def start(self) -> None:
        if self._state is OrchestratorState.RUNNING:
            logger.warning("Orchestrator already running")
            return
        if self._state is OrchestratorState.PAUSED:
            await self.resume()
            return

        logger.info("Starting health orchestrator with %d target(s)", len(self.targets))
        self._state = OrchestratorState.RUNNING
        self._started_at = self._clock()
        if self.config.monitoring.run_initial_check:
            await self.run_full_check()
        self._start_timers()
        await self._publish_status("started")

    async def pause(self) -> None:
        if self._state is not OrchestratorState.RUNNING:
            logger.debug("Pause ignored in state %s", self._state.value)
            return
        # Timers survive a pause; only their ticks stop.
        for timer in self._timers.values():
            timer.cancel()
        self._state = OrchestratorState.PAUSED
        logger.info("Health orchestrator paused")
        await self._publish_status("paused")

    async def resume(self) -> None:
        if self._state is not OrchestratorState.PAUSED:
            logger.debug("Resume ignored in state %s", self._state.value)
            return
        for timer in self._timers.values():
            timer.start()
        self._state = OrchestratorState.RUNNING
        logger.info("Health orchestrator resumed")
        await self._publish_status("resumed")

    async def stop(self) -> None:
        if self._state is OrchestratorState.STOPPED:
            return
        logger.info("Stopping health orchestrator")
        timers = list(self._timers.values())
        self._cancel_timers()
        for timer in timers:
            await timer.wait_for_runs()
        self._state = OrchestratorState.STOPPED
        await self._publish_status("stopped")
        await self.sessions.close()

    def reset(self) -> None:
        """Forget statistics, latest results and retained alerts."""
        self.statistics.reset()
        self.results.clear()
        self.database.clear()
        self.dispatcher.clear()
        logger.info("Health orchestrator state reset")

    def _start_timers(self) -> None:
        self._cancel_timers()
        monitoring = self.config.monitoring
        for target in self.targets:
            self._add_timer(f"target-{target.name}", target.interval_ms, self._make_target_job(target))
        self._add_timer("full-sweep", monitoring.health_check_interval_ms, self.run_full_check)
        if self.config.database.enabled:
            self._add_timer("database-check", self.config.database.interval_ms, self.run_database_check)
        self._add_timer("metrics-report", monitoring.metrics_interval_ms, self.collect_and_report_metrics)
        logger.info("Scheduled %d recurring job(s)", len(self._timers))

    def _add_timer(self, name: str, interval_ms: int, job) -> None:
        schedule = interval_to_schedule(interval_ms)
        timer = RecurringTimer(name, schedule.period_seconds, job)
        self._timers[name] = timer
        timer.start()
        logger.debug("Timer %s runs %s", name, schedule.describe())

    def _make_target_job(self, target: Target):
        async def job() -> None:
            started = asyncio.get_running_loop().time()
            result = await self.check_target(target)
            self.statistics.record([result], (asyncio.get_running_loop().time() - started) * 1000.0)

        return job

    def _cancel_timers(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers = {}

    # Checks

    async def check_target(self, target: Target) -> CheckResult:
        """Probe one target, bounded by its timeout plus a grace period, and store the result."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = target.timeout_seconds + self._deadline_grace_seconds
        try:
            outcome = await asyncio.wait_for(self.probes.run(target), timeout=deadline)
        except asyncio.TimeoutError:
            result = error_result(
                target,
                f"Probe exceeded deadline of {deadline * 1000:.0f}ms",
                self._clock(),
                (loop.time() - started) * 1000.0,
            )
        except PROBE_ERRORS as exc:
            logger.warning("Health check failed for %s: %s", target.name, exc)
            result = error_result(target, str(exc), self._clock(), (loop.time() - started) * 1000.0)
        else:
            result = CheckResult(
                target_name=target.name,
                status=CheckStatus.HEALTHY if outcome.healthy else CheckStatus.UNHEALTHY,
                observed_at=self._clock(),
                response_time_ms=(loop.time() - started) * 1000.0,
                error=outcome.error,
                critical=target.critical,
                details=dict(outcome.details or {}),
            )

        self.results.put(result)
        logger.debug("Health check for %s: %s", target.name, result.status.value)
        return result

    async def run_full_check(self) -> SweepSummary:
        """Probe every target concurrently, then aggregate, alert and report."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        outcomes = await asyncio.gather(
            *(self.check_target(target) for target in self.targets),
            return_exceptions=True,
        )

        results: List[CheckResult] = []
        for target, outcome in zip(self.targets, outcomes):
            if isinstance(outcome, CheckResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error("Unexpected failure checking %s: %s", target.name, outcome)
            result = error_result(target, str(outcome), self._clock())
            self.results.put(result)
            results.append(result)

        duration_ms = (loop.time() - started) * 1000.0
        summary = summarize(results, duration_ms)
        self.statistics.record_sweep(results, duration_ms, self._clock())

        await self.dispatcher.dispatch_all(classify_results(results))
        await self._publish_metrics(sweep_report(summary), metric_type="health-check-results")
        if self.core is not None:
            await self._push_core_status(summary)
        logger.debug(
            "Full health check completed in %.0fms: %d/%d healthy",
            duration_ms,
            summary.healthy,
            summary.total,
        )
        return summary

    async def run_database_check(self) -> List[DatabaseCheckResult]:
        results = await self.database.run()
        report = {
            "type": "database-health",
            "results": [result.to_dict() for result in results],
        }
        await self._publish_metrics(report, metric_type="database-health", routing_key="metrics.database")

        failed = [result for result in results if not result.is_healthy]
        if failed:
            await self.dispatcher.dispatch(
                Alert(
                    message=f"Database health check failed for {len(failed)}/{len(results)} queries",
                    severity=AlertSeverity.CRITICAL,
                    timestamp=self._clock(),
                    alert_type="database-health",
                    details={"failed": [result.to_dict() for result in failed]},
                )
            )
        return results

    async def collect_and_report_metrics(self) -> Dict[str, Any]:
        metrics = {
            "type": "health-monitor-metrics",
            "orchestrator": self.get_status(),
            "gateway": self.gateway.get_status(),
            "self_monitoring": self.self_monitor.get_current_metrics() if self.self_monitor else None,
            "targets": [result.to_dict() for result in self.results.all()],
        }
        await self._publish_metrics(metrics, metric_type="health-monitor-metrics")
        return metrics

    # Publication

    async def _publish_metrics(self, metrics: Dict[str, Any], *, metric_type: str, routing_key: str = "metrics.health") -> None:
        try:
            await publish_health_metrics(self.gateway, metrics, metric_type=metric_type, routing_key=routing_key)
        except BrokerTransportError as exc:
            logger.warning("Failed to publish %s metrics: %s", metric_type, exc)

    async def _push_core_status(self, summary: SweepSummary) -> None:
        try:
            await self.core.update_health_status(
                overall_status(summary.results),
                {
                    "total_targets": summary.total,
                    "healthy_targets": summary.healthy,
                    "unhealthy_targets": summary.unhealthy,
                    "critical_issues": summary.critical,
                    "non_critical_issues": summary.unhealthy - summary.critical,
                },
                details={
                    "last_check": self._clock(),
                    "results": [
                        {"name": r.target_name, "status": r.status.value, "response_time_ms": r.response_time_ms}
                        for r in summary.results
                    ],
                },
            )
        except CoreIntegrationError as exc:
            logger.warning("Failed to push health status to core: %s", exc)

    async def _publish_status(self, status: str) -> None:
        try:
            await publish_system_status(
                self.gateway,
                {"service": self.config.service_name, "status": status, "timestamp": self._clock()},
            )
        except BrokerTransportError as exc:
            logger.warning("Failed to publish %s status: %s", status, exc)

    # Read API

    def get_results(self) -> List[CheckResult]:
        return self.results.all()

    def get_status(self) -> Dict[str, Any]:
        results = self.results.all()
        uptime = self._clock() - self._started_at if self._started_at is not None else 0.0
        return {
            "state": self._state.value,
            "running": self.is_running,
            "paused": self.is_paused,
            "uptime_seconds": uptime,
            "targets": len(self.targets),
            "overall_status": overall_status(results),
            "statistics": self.statistics.to_dict(),
            "timers": sorted(name for name, timer in self._timers.items() if timer.active),
        }


__all__ = ["HealthOrchestrator", "OrchestratorState"]
