"""Tests for the diagnostics collector and its lifecycle."""

import dataclasses
import json

import httpx
import pytest

from comms_observability import collector as collector_module
from comms_observability import config
from comms_observability.collector import (
    NoopCollector,
    ObservabilityCollector,
    get_collector,
    reset_collector,
)
from comms_observability.types import DiagnosticsSnapshot, ErrorKind, HealthStatus


def _record_requests(collector, statuses, path="functions/scanReadiness"):
    for status in statuses:
        collector.record_network_request({
            "url": f"https://api.example.com/{path}?token=abc",
            "status_code": status,
            "duration_ms": 20,
        })


class TestHealthStatus:
    """Tests for health derived from collector state."""

    def test_empty_collector_is_green(self, collector):
        assert collector.get_health_status() == HealthStatus.GREEN

    def test_errors_and_failure_is_amber(self, collector):
        collector.record_error({"message": "a"})
        collector.record_error({"message": "b"})
        _record_requests(collector, [500])
        assert collector.get_health_status() == HealthStatus.AMBER

    def test_many_errors_is_red(self, collector):
        for i in range(5):
            collector.record_error({"message": f"e{i}"})
        assert collector.get_health_status() == HealthStatus.RED

    def test_old_errors_do_not_count(self, collector, clock):
        for i in range(5):
            collector.record_error({"message": f"e{i}"})
        clock.advance(seconds=6 * 60)
        assert collector.get_health_status() == HealthStatus.GREEN

    def test_failures_count_whole_buffer(self, collector, clock):
        _record_requests(collector, [0, 503])
        clock.advance(seconds=3600)
        assert collector.get_health_status() == HealthStatus.AMBER

    def test_recomputed_on_each_call(self, collector, clock):
        collector.record_error({"message": "x"})
        assert collector.get_health_status() == HealthStatus.AMBER
        clock.advance(seconds=301)
        assert collector.get_health_status() == HealthStatus.GREEN


class TestAuxiliaryState:
    """Tests for heartbeats, seed/wipe runs and mode flags."""

    def test_heartbeat(self, collector, clock):
        collector.record_subscription_heartbeat("net-1", "evt-1", "ok")
        clock.advance(seconds=5)
        collector.record_subscription_heartbeat("net-2", "evt-2", "stale")

        snapshot = collector.get_diagnostics_summary()

        assert snapshot.last_heartbeat.net_id == "net-2"
        assert snapshot.last_heartbeat.status == "stale"
        assert snapshot.last_heartbeat.timestamp == clock.now

    def test_seed_wipe_run(self, collector):
        collector.record_seed_wipe_run(step="3/5", action="seed", status="success", duration_ms=812)

        seed = collector.get_diagnostics_summary().last_seed_wipe

        assert seed.action == "seed"
        assert seed.status == "success"
        assert seed.duration_ms == 812

    @pytest.mark.parametrize("details,expected", [
        ({"rows": 12}, {"rows": 12}),
        ("partial", {"value": "partial"}),
        (["a", "b"], {"value": ["a", "b"]}),
        (None, None),
    ])
    def test_seed_wipe_details_any_shape(self, collector, details, expected):
        collector.record_seed_wipe_run(step="1", action="seed", status="ok", details=details)

        seed = collector.get_diagnostics_summary().last_seed_wipe

        assert seed.details == expected

    def test_modes(self, collector):
        collector.set_comms_mode("live")
        collector.set_livekit_env("staging")

        snapshot = collector.get_diagnostics_summary()

        assert snapshot.comms_mode.value == "live"
        assert snapshot.livekit_env.value == "staging"

    def test_verbose_toggle(self, collector):
        assert collector.get_verbose_requests_enabled() is False
        collector.set_verbose_requests(True)
        assert collector.get_verbose_requests_enabled() is True


class TestDiagnosticsSummary:
    """Tests for get_diagnostics_summary."""

    def test_empty_snapshot(self, collector, clock):
        snapshot = collector.get_diagnostics_summary()

        assert isinstance(snapshot, DiagnosticsSnapshot)
        assert snapshot.health_status == HealthStatus.GREEN
        assert snapshot.generated_at == clock.now
        assert snapshot.last_heartbeat is None
        assert snapshot.last_seed_wipe is None
        assert snapshot.recent_errors == ()
        assert snapshot.requests_per_min == 0
        assert snapshot.total_errors == 0
        assert snapshot.net_summaries == ()

    def test_full_snapshot(self, collector, clock):
        for i in range(7):
            collector.record_error({"message": f"e{i}"})
        _record_requests(collector, [200, 200])
        _record_requests(collector, [200], path="entities/Event")
        collector.record_connection_start("ALPHA", "Alpha Net")
        clock.advance(ms=150)
        collector.record_connection_success("ALPHA")
        collector.record_latency_sample("ALPHA", 40)

        snapshot = collector.get_diagnostics_summary()

        assert len(snapshot.recent_errors) == 5
        assert snapshot.recent_errors[0].message == "e6"
        assert snapshot.total_errors == 7
        assert snapshot.total_requests == 3
        assert snapshot.requests_per_min == 3
        assert [r.url for r in snapshot.comms_requests] == [
            "https://api.example.com/functions/scanReadiness",
            "https://api.example.com/functions/scanReadiness",
        ]
        assert snapshot.net_summaries[0].net_code == "Alpha Net"
        assert snapshot.net_summaries[0].avg_connection_time == pytest.approx(150.0)
        assert snapshot.health_status == HealthStatus.RED

    def test_snapshot_is_immutable(self, collector):
        snapshot = collector.get_diagnostics_summary()
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.total_errors = 99

    def test_snapshot_not_affected_by_later_writes(self, collector):
        snapshot = collector.get_diagnostics_summary()
        collector.record_error({"message": "later"})
        assert snapshot.recent_errors == ()

    def test_to_dict_is_json_serializable(self, collector):
        collector.record_error({"type": "unhandled_rejection", "message": "lost"})
        collector.record_subscription_heartbeat("n", "e", "ok")

        data = collector.get_diagnostics_summary().to_dict()
        encoded = json.loads(json.dumps(data))

        assert encoded["health_status"] == "amber"
        assert encoded["recent_errors"][0]["kind"] == ErrorKind.UNHANDLED_REJECTION.value
        assert encoded["last_heartbeat"]["net_id"] == "n"

    def test_interceptor_feeds_snapshot(self, collector):
        def handler(request):
            return httpx.Response(200)

        with collector.network.create_client(transport=httpx.MockTransport(handler)) as client:
            client.get("https://api.example.com/functions/getLiveKitRoomStatus?token=secret")
            client.get("https://api.example.com/entities/Squad")

        snapshot = collector.get_diagnostics_summary()
        assert snapshot.total_requests == 1
        assert snapshot.comms_requests[0].url == "https://api.example.com/functions/getLiveKitRoomStatus"


class TestReset:
    """Tests for reset()."""

    def test_reset_clears_everything(self, collector):
        collector.record_error({"message": "a"})
        _record_requests(collector, [500])
        collector.record_reconnect_attempt("N1")
        collector.record_latency_sample("N1", 10)
        collector.record_subscription_heartbeat("n", "e", "ok")
        collector.record_seed_wipe_run(action="wipe", status="success")
        collector.set_comms_mode("sim")
        collector.set_livekit_env("prod")

        collector.reset()

        snapshot = collector.get_diagnostics_summary()
        assert snapshot.recent_errors == ()
        assert snapshot.total_errors == 0
        assert snapshot.total_requests == 0
        assert snapshot.comms_requests == ()
        assert snapshot.net_summaries == ()
        assert snapshot.last_heartbeat is None
        assert snapshot.last_seed_wipe is None
        assert snapshot.comms_mode is None
        assert snapshot.livekit_env is None

    def test_usable_after_reset(self, collector):
        collector.reset()
        collector.record_error({"message": "after"})
        assert collector.get_recent_errors(5)[0].message == "after"
        assert collector.record_reconnect_attempt("N1") == 1


class TestNoopCollector:
    """Tests for the no-op fallback."""

    def test_has_same_operations(self):
        public = {name for name in dir(ObservabilityCollector) if not name.startswith("_")}
        assert public <= set(dir(NoopCollector))

    def test_accepts_everything(self):
        noop = NoopCollector()
        noop.install()
        noop.record_error({"message": "x"})
        noop.record_network_request({"url": "https://a.example.com"})
        noop.record_connection_start("N1")
        noop.record_connection_success("N1")
        noop.record_reconnect_attempt("N1")
        noop.record_latency_sample("N1", 50)
        noop.record_subscription_heartbeat("n", "e", "ok")
        noop.record_seed_wipe_run(action="seed")
        noop.set_comms_mode("live")
        noop.set_livekit_env("prod")
        noop.set_verbose_requests(True)
        noop.subscribe(lambda record: None)()
        noop.reset()

        assert noop.get_recent_errors(5) == []
        assert noop.get_recent_comms_requests(5) == []
        assert noop.get_requests_per_minute() == 0
        assert noop.get_net_summaries() == []
        assert noop.get_verbose_requests_enabled() is False

    def test_reports_green(self):
        noop = NoopCollector()
        assert noop.get_health_status() == HealthStatus.GREEN
        assert noop.get_diagnostics_summary().health_status == HealthStatus.GREEN


class TestSingleton:
    """Tests for get_collector / reset_collector."""

    def test_same_instance(self, fresh_singleton):
        first = get_collector()
        assert first is get_collector()
        assert isinstance(first, ObservabilityCollector)
        assert first.errors.installed

    def test_reset_keeps_identity(self, fresh_singleton):
        instance = get_collector()
        instance.record_error({"message": "x"})

        reset_collector()

        assert get_collector() is instance
        assert instance.get_recent_errors(5) == []
        instance.record_error({"message": "y"})
        assert len(instance.get_recent_errors(5)) == 1

    def test_disabled_uses_noop(self, fresh_singleton, monkeypatch):
        monkeypatch.setattr(config, "OBSERVABILITY_ENABLED", False)
        assert isinstance(get_collector(), NoopCollector)

    def test_missing_host_hooks_uses_noop(self, fresh_singleton, monkeypatch):
        monkeypatch.setattr(collector_module, "_host_supports_collector", lambda: False)
        assert isinstance(get_collector(), NoopCollector)

    def test_construction_failure_uses_noop(self, fresh_singleton, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("no hooks here")

        monkeypatch.setattr(collector_module, "ObservabilityCollector", broken)
        assert isinstance(get_collector(), NoopCollector)
