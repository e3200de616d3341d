"""Behavioural tests for the health-check orchestrator."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest

from health_agent.alerting.models import AlertSeverity
from health_agent.config.settings import CoreIntegrationSettings
from health_agent.core_integration import CoreIntegrationClient
from health_agent.messaging.envelope import BrokerMessage
from health_agent.messaging.gateway import QUEUE_GROUP, MessagingGateway
from health_agent.messaging.gateway_helpers.streams import decode_stream_response
from health_agent.orchestrator import OrchestratorState
from health_agent.probes.models import CheckStatus, ProbeOutcome

from tests.helpers.core_api import FakeCoreApi
from tests.helpers.orchestrator_builders import HANG, http_target, make_config, published

DB_QUEUE = "broker:queue:database.health"


async def _answer_database_request(client, *, status: str) -> BrokerMessage:
    while True:
        response = await client.xreadgroup(QUEUE_GROUP, "db-service", {DB_QUEUE: ">"}, count=1, block=20)
        entries = decode_stream_response(response)
        if entries:
            break
    _entry_id, fields = entries[0]
    request = BrokerMessage.from_json(fields["envelope"])
    reply = BrokerMessage(
        source="db-service",
        message_type="database-health-response",
        payload={"status": status, "data": {"rows": 1}},
        correlation_id=request.correlation_id,
    )
    await client.xadd(request.reply_to, {"envelope": reply.to_json()}, nomkstream=True)
    return request


class TestFullCheck:
    @pytest.mark.asyncio
    async def test_critical_http_500_raises_one_critical_alert(
        self, connected_gateway, fake_redis_factory, build_orchestrator, scripted_probes
    ):
        config = make_config([http_target("svc-a", critical=True)])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, {"status_code": 500}, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway)

        summary = await orchestrator.run_full_check()

        assert (summary.total, summary.healthy, summary.critical) == (1, 0, 1)
        alerts = orchestrator.dispatcher.history.recent(None)
        assert len(alerts) == 1
        assert alerts[0].severity is AlertSeverity.CRITICAL
        assert alerts[0].alert_type == "service-down"
        assert alerts[0].message == "Critical service svc-a is unhealthy"

        client = fake_redis_factory.clients[-1]
        [alert_message] = published(client, "health.alerts")
        assert alert_message.severity == "critical"
        assert alert_message.payload["target"] == "svc-a"
        [report] = published(client, "health.metrics")
        assert report.message_type == "health-check-results"
        assert report.payload["summary"]["unhealthy"] == 1

    @pytest.mark.asyncio
    async def test_non_critical_failure_is_degraded_warning(self, connected_gateway, build_orchestrator, scripted_probes):
        config = make_config([http_target("svc-b")])
        scripted_probes.outcomes["svc-b"] = ProbeOutcome(False, None, "HTTP 503")
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.run_full_check()

        [alert] = orchestrator.dispatcher.history.recent(None)
        assert alert.severity is AlertSeverity.WARNING
        assert alert.alert_type == "service-degraded"
        assert alert.details["error"] == "HTTP 503"

    @pytest.mark.asyncio
    async def test_one_failing_target_does_not_affect_others(self, connected_gateway, build_orchestrator, scripted_probes):
        config = make_config(
            [http_target("ok"), http_target("broken"), http_target("stuck", timeout_ms=20)],
            grace_ms=20,
        )
        scripted_probes.outcomes["broken"] = OSError("connection reset")
        scripted_probes.outcomes["stuck"] = HANG
        orchestrator = build_orchestrator(config, connected_gateway)

        summary = await orchestrator.run_full_check()

        by_name = {result.target_name: result for result in summary.results}
        assert by_name["ok"].status is CheckStatus.HEALTHY
        assert by_name["broken"].status is CheckStatus.ERROR
        assert by_name["broken"].error == "connection reset"
        assert by_name["stuck"].status is CheckStatus.ERROR
        assert "deadline" in by_name["stuck"].error
        assert len(orchestrator.get_results()) == 3

    @pytest.mark.asyncio
    async def test_statistics_accumulate_and_reset(self, connected_gateway, build_orchestrator, scripted_probes):
        config = make_config([http_target("ok"), http_target("down")])
        scripted_probes.outcomes["down"] = ProbeOutcome(False, None, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.run_full_check()
        first = orchestrator.statistics.to_dict()
        await orchestrator.run_full_check()
        second = orchestrator.statistics.to_dict()

        assert (first["total_checks"], first["successful_checks"], first["failed_checks"]) == (2, 1, 1)
        assert second["total_checks"] == 4
        assert second["sweeps"] == 2
        assert second["last_full_check_at"] >= first["last_full_check_at"]
        assert "_timed_checks" not in second

        orchestrator.reset()

        assert orchestrator.statistics.total_checks == 0
        assert orchestrator.get_results() == []
        assert len(orchestrator.dispatcher.history) == 0

    @pytest.mark.asyncio
    async def test_target_job_updates_results_without_alerting(
        self, connected_gateway, build_orchestrator, scripted_probes
    ):
        config = make_config([http_target("svc-a", critical=True)])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator._make_target_job(config.target("svc-a"))()

        assert orchestrator.results.get("svc-a").status is CheckStatus.UNHEALTHY
        assert orchestrator.statistics.total_checks == 1
        assert len(orchestrator.dispatcher.history) == 0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_pause_and_resume_do_not_duplicate_alerts(
        self, connected_gateway, fake_redis_factory, build_orchestrator, scripted_probes
    ):
        config = make_config([http_target("svc-a", critical=True)])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.start()
        assert orchestrator.state is OrchestratorState.RUNNING
        assert set(orchestrator.get_status()["timers"]) == {"target-svc-a", "full-sweep", "metrics-report"}

        await orchestrator.pause()
        assert orchestrator.state is OrchestratorState.PAUSED
        assert orchestrator.get_status()["timers"] == []

        await orchestrator.resume()
        assert orchestrator.state is OrchestratorState.RUNNING
        assert len(orchestrator.dispatcher.history) == 1
        assert scripted_probes.calls == ["svc-a"]

        await orchestrator.stop()
        statuses = [message.payload["status"] for message in published(fake_redis_factory.clients[-1], "system.status")]
        assert statuses == ["started", "paused", "resumed", "stopped"]

    @pytest.mark.asyncio
    async def test_stop_after_pause_waits_for_running_sweep(self, connected_gateway, build_orchestrator, scripted_probes):
        config = make_config([http_target("svc-a", critical=True)], run_initial_check=False)
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        scripted_probes.delays["svc-a"] = 0.3
        orchestrator = build_orchestrator(config, connected_gateway)
        await orchestrator.start()
        sweep_timer = orchestrator._timers["full-sweep"]
        sweep_timer._fire()
        await asyncio.sleep(0.05)

        await orchestrator.pause()
        await orchestrator.stop()

        assert orchestrator.state is OrchestratorState.STOPPED
        assert sweep_timer.run_in_progress is False
        assert len(orchestrator.dispatcher.history) == 1
        await asyncio.sleep(0.35)
        assert len(orchestrator.dispatcher.history) == 1

    @pytest.mark.asyncio
    async def test_tick_after_resume_skips_while_earlier_sweep_runs(
        self, connected_gateway, build_orchestrator, scripted_probes
    ):
        config = make_config([http_target("svc-a", critical=True)], run_initial_check=False)
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        scripted_probes.delays["svc-a"] = 0.3
        orchestrator = build_orchestrator(config, connected_gateway)
        await orchestrator.start()
        sweep_timer = orchestrator._timers["full-sweep"]
        sweep_timer._fire()
        await asyncio.sleep(0.05)

        await orchestrator.pause()
        await orchestrator.resume()
        assert orchestrator._timers["full-sweep"] is sweep_timer
        sweep_timer._fire()

        assert sweep_timer.skipped == 1
        await orchestrator.stop()
        assert scripted_probes.calls == ["svc-a"]
        assert len(orchestrator.dispatcher.history) == 1

    @pytest.mark.asyncio
    async def test_start_twice_and_stop_twice(self, connected_gateway, fake_redis_factory, build_orchestrator):
        config = make_config([http_target("svc-a")], run_initial_check=False)
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.start()
        await orchestrator.start()
        await orchestrator.stop()
        await orchestrator.stop()

        assert orchestrator.state is OrchestratorState.STOPPED
        statuses = [message.payload["status"] for message in published(fake_redis_factory.clients[-1], "system.status")]
        assert statuses == ["started", "stopped"]

    @pytest.mark.asyncio
    async def test_start_when_paused_resumes(self, connected_gateway, build_orchestrator, scripted_probes):
        config = make_config([http_target("svc-a")])
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.start()
        await orchestrator.pause()
        await orchestrator.start()

        assert orchestrator.is_running
        assert scripted_probes.calls == ["svc-a"]
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_disconnected_gateway_does_not_stop_probing(self, fake_redis_factory, build_orchestrator, scripted_probes):
        config = make_config([http_target("svc-a", critical=True)])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        gateway = MessagingGateway(config.broker, client_factory=fake_redis_factory)
        orchestrator = build_orchestrator(config, gateway)

        await orchestrator.start()
        metrics = await orchestrator.collect_and_report_metrics()
        await orchestrator.stop()

        assert orchestrator.results.get("svc-a").status is CheckStatus.UNHEALTHY
        assert len(orchestrator.dispatcher.history) == 1
        assert orchestrator.dispatcher.publish_failures == 1
        assert metrics["gateway"]["connected"] is False
        assert metrics["orchestrator"]["overall_status"] == "critical"


class TestDatabaseCheck:
    @pytest.mark.asyncio
    async def test_healthy_reply_publishes_metrics_without_alert(
        self, connected_gateway, fake_redis_factory, build_orchestrator
    ):
        config = make_config([], database_enabled=True, database_timeout_ms=1_000)
        orchestrator = build_orchestrator(config, connected_gateway)
        client = fake_redis_factory.clients[-1]

        responder = asyncio.create_task(_answer_database_request(client, status="healthy"))
        results = await orchestrator.run_database_check()
        request = await responder

        assert request.payload == {"queryId": "basic", "query": "SELECT 1", "timeout": 1_000}
        assert [result.status for result in results] == ["healthy"]
        assert results[0].data == {"rows": 1}
        assert len(orchestrator.dispatcher.history) == 0
        [report] = published(client, "health.metrics")
        assert report.message_type == "database-health"

    @pytest.mark.asyncio
    async def test_error_status_raises_critical_alert(self, connected_gateway, fake_redis_factory, build_orchestrator):
        config = make_config([], database_enabled=True, database_timeout_ms=1_000)
        orchestrator = build_orchestrator(config, connected_gateway)
        client = fake_redis_factory.clients[-1]

        responder = asyncio.create_task(_answer_database_request(client, status="error"))
        results = await orchestrator.run_database_check()
        await responder

        assert results[0].status == "unhealthy"
        assert results[0].error == "Database reported status 'error'"
        [alert] = orchestrator.dispatcher.history.recent(None)
        assert alert.severity is AlertSeverity.CRITICAL
        assert alert.message == "Database health check failed for 1/1 queries"

    @pytest.mark.asyncio
    async def test_timeout_raises_one_critical_alert(self, connected_gateway, build_orchestrator):
        config = make_config([], database_enabled=True, database_timeout_ms=50)
        orchestrator = build_orchestrator(config, connected_gateway)

        results = await orchestrator.run_database_check()

        assert results[0].status == "unhealthy"
        assert results[0].error.startswith("Timed out:")
        alerts = orchestrator.dispatcher.history.recent(None)
        assert len(alerts) == 1
        assert alerts[0].alert_type == "database-health"
        assert connected_gateway.pending_requests == 0

    @pytest.mark.asyncio
    async def test_database_timer_only_when_enabled(self, connected_gateway, build_orchestrator):
        config = make_config([], database_enabled=True, run_initial_check=False)
        orchestrator = build_orchestrator(config, connected_gateway)

        await orchestrator.start()
        timers = orchestrator.get_status()["timers"]
        await orchestrator.stop()

        assert "database-check" in timers


class TestCoreStatusPush:
    @pytest.mark.asyncio
    async def test_sweep_pushes_summary_to_core(self, connected_gateway, build_orchestrator, scripted_probes):
        api = FakeCoreApi()
        api.routes[("POST", "/api/health/update")] = (200, {"accepted": True})
        core = CoreIntegrationClient(CoreIntegrationSettings(enabled=True, api_url=api.base_url), "health-agent", sessions=api)
        config = make_config([http_target("svc-a", critical=True), http_target("svc-b")])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway, core=core)

        await orchestrator.run_full_check()

        [document] = api.posted("/api/health/update")
        assert document["status"] == "critical"
        assert document["metrics"] == {
            "total_targets": 2,
            "healthy_targets": 1,
            "unhealthy_targets": 1,
            "critical_issues": 1,
            "non_critical_issues": 0,
        }
        assert [entry["name"] for entry in document["details"]["results"]] == ["svc-a", "svc-b"]

    @pytest.mark.asyncio
    async def test_unreachable_core_does_not_break_sweep(self, connected_gateway, build_orchestrator, scripted_probes):
        api = FakeCoreApi()
        api.error = aiohttp.ClientConnectionError("refused")
        core = CoreIntegrationClient(CoreIntegrationSettings(enabled=True, api_url=api.base_url), "health-agent", sessions=api)
        config = make_config([http_target("svc-a", critical=True)])
        scripted_probes.outcomes["svc-a"] = ProbeOutcome(False, None, "HTTP 500")
        orchestrator = build_orchestrator(config, connected_gateway, core=core)

        summary = await orchestrator.run_full_check()

        assert summary.unhealthy == 1
        assert len(orchestrator.dispatcher.history) == 1
        assert core.update_failures == 1
