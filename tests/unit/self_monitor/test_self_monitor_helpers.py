"""Tests for self-monitoring helper components."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import psutil
import pytest

from health_agent.alerting.models import AlertSeverity
from health_agent.config.settings import ThresholdSettings
from health_agent.self_monitor_helpers.event_loop_probe import EventLoopDelaySampler
from health_agent.self_monitor_helpers.metrics_reader import MetricsReader
from health_agent.self_monitor_helpers.models import MetricsSnapshot, ProcessCpu, ProcessMemory, SystemLoad
from health_agent.self_monitor_helpers.snapshot_store import SnapshotStore
from health_agent.self_monitor_helpers.threshold_evaluator import evaluate_thresholds
from health_agent.self_monitor_helpers.uptime import format_uptime


def _snapshot(observed_at=1.0, rss_mb=10.0, cpu=1.0, delay_ms=0.0) -> MetricsSnapshot:
    return MetricsSnapshot(
        observed_at=observed_at,
        process_memory=ProcessMemory(rss_mb=rss_mb, vms_mb=rss_mb),
        process_cpu=ProcessCpu(percent=cpu, user_seconds=0.0, system_seconds=0.0),
        event_loop_delay_ms=delay_ms,
        system_load=SystemLoad(load_average=(0.0, 0.0, 0.0), memory_percent=10.0),
    )


class TestMetricsReader:
    def _process(self, times):
        process = MagicMock()
        process.cpu_times.side_effect = [SimpleNamespace(user=user, system=system) for user, system in times]
        process.memory_info.return_value = SimpleNamespace(rss=256 * 1024 * 1024, vms=512 * 1024 * 1024)
        return process

    def test_cpu_percent_uses_delta_since_baseline(self):
        clock = iter([0.0, 2.0, 4.0])
        reader = MetricsReader(self._process([(1.0, 0.5), (2.0, 0.5), (2.0, 0.5)]), clock=lambda: next(clock))

        first = reader.read_cpu()
        second = reader.read_cpu()

        assert first.percent == pytest.approx(50.0)
        assert second.percent == pytest.approx(0.0)
        assert first.user_seconds == 2.0

    def test_memory_in_megabytes(self):
        reader = MetricsReader(self._process([(0.0, 0.0)]), clock=lambda: 0.0)

        memory = reader.read_memory()

        assert memory.rss_mb == pytest.approx(256.0)
        assert memory.vms_mb == pytest.approx(512.0)

    def test_memory_read_failure_returns_zero(self):
        process = self._process([(0.0, 0.0)])
        process.memory_info.side_effect = psutil.AccessDenied()
        reader = MetricsReader(process, clock=lambda: 0.0)

        assert reader.read_memory() == ProcessMemory(rss_mb=0.0, vms_mb=0.0)


class TestThresholds:
    def test_nothing_breached(self):
        assert evaluate_thresholds(_snapshot(), ThresholdSettings()) == []

    def test_values_at_threshold_do_not_alert(self):
        snapshot = _snapshot(rss_mb=500.0, cpu=80.0, delay_ms=100.0)

        assert evaluate_thresholds(snapshot, ThresholdSettings()) == []

    def test_all_breached(self):
        snapshot = _snapshot(rss_mb=501.0, cpu=81.0, delay_ms=250.0)

        alerts = evaluate_thresholds(snapshot, ThresholdSettings())

        assert [alert.alert_type for alert in alerts] == ["memory-usage", "cpu-usage", "event-loop-delay"]
        assert {alert.severity for alert in alerts} == {AlertSeverity.WARNING}
        assert alerts[2].details == {"value": 250.0, "threshold": 100.0}


class TestSnapshotStore:
    def test_purge_drops_only_expired(self):
        store = SnapshotStore(retention_seconds=10.0)
        for ts in (0.0, 5.0, 12.0):
            store.add(_snapshot(observed_at=ts))

        assert store.purge(now=12.0) == 1
        assert [s.observed_at for s in store.history()] == [5.0, 12.0]

    def test_timestamps_stay_increasing(self):
        store = SnapshotStore(retention_seconds=100.0)
        store.add(_snapshot(observed_at=10.0))
        late = _snapshot(observed_at=9.0)

        store.add(late)

        assert late.observed_at > 10.0
        assert store.latest() is late
        assert len(store.history(limit=1)) == 1


class TestEventLoopDelaySampler:
    def test_record_clamps_negative_drift(self):
        sampler = EventLoopDelaySampler()

        sampler.record(-3.0)
        sampler.record(40.0)
        sampler.record(10.0)

        assert sampler.latest_delay_ms == 10.0
        assert sampler.max_delay_ms == 40.0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        sampler = EventLoopDelaySampler(0.01)

        sampler.start()
        assert sampler.running is True
        await sampler.stop()

        assert sampler.running is False


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0s"), (59, "59s"), (60, "1m"), (3_600, "1h"), (93_784, "1d 2h 3m 4s"), (86_405, "1d 5s")],
)
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected
