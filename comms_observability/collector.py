"""
Diagnostics collector.

``ObservabilityCollector`` owns the error capture, network interceptor,
voice telemetry and the small auxiliary records (heartbeats, seed/wipe runs,
mode flags), and assembles them into a ``DiagnosticsSnapshot``, the only
object the admin panel reads.

Applications build one collector at their composition root and pass it to
the components that report into it. ``get_collector()`` provides the same
thing as a lazily created process-wide instance; if the collector cannot be
built for this host, it returns a ``NoopCollector`` with the same methods.
"""

import logging
import sys
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from . import config
from .errors import ErrorCapture, ErrorSubscriber
from .health import HealthThresholds, classify_health
from .network import NetworkInterceptor
from .ring_buffer import RingBuffer
from .types import (
    DiagnosticsSnapshot,
    ErrorRecord,
    HealthStatus,
    HeartbeatRecord,
    ModeRecord,
    NetSummary,
    NetworkRequestRecord,
    SeedWipeRecord,
)
from .voice import VoiceTelemetry

logger = logging.getLogger("comms_observability")

SUMMARY_ERROR_LIMIT = 5
SUMMARY_COMMS_REQUEST_LIMIT = 10


def _details_dict(details: Any) -> Optional[Dict[str, Any]]:
    """Copy seed/wipe details; anything that is not a mapping is kept under ``value``."""
    if details is None:
        return None
    if isinstance(details, Mapping):
        return dict(details)
    return {"value": details}


class ObservabilityCollector:
    """Process-lifetime store of errors, requests and voice telemetry."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        thresholds: Optional[HealthThresholds] = None,
        verbose_requests: Optional[bool] = None,
        comms_endpoints: Optional[Iterable[str]] = None,
    ):
        self._clock = clock
        self.thresholds = thresholds or HealthThresholds.from_config()
        self.errors = ErrorCapture(clock=clock)
        self.network = NetworkInterceptor(
            verbose=verbose_requests, comms_endpoints=comms_endpoints, clock=clock
        )
        self.voice = VoiceTelemetry(clock=clock)
        self._heartbeats: RingBuffer[HeartbeatRecord] = RingBuffer(config.HEARTBEAT_CAPACITY)
        self._seed_runs: RingBuffer[SeedWipeRecord] = RingBuffer(config.SEED_RUN_CAPACITY)
        self._comms_mode: Optional[ModeRecord] = None
        self._livekit_env: Optional[ModeRecord] = None

    # ── Lifecycle ───────────────────────────────────────────────────

    def install(self) -> bool:
        """Hook the interpreter's uncaught-exception signals. Idempotent."""
        return self.errors.install()

    def reset(self) -> None:
        """Empty every buffer and counter in place. Installed hooks are kept."""
        self.errors.clear()
        self.network.clear()
        self.voice.clear()
        self._heartbeats.clear()
        self._seed_runs.clear()
        self._comms_mode = None
        self._livekit_env = None
        logger.info("Observability collector reset")

    # ── Ingestion ───────────────────────────────────────────────────

    def record_error(self, data: Any) -> ErrorRecord:
        return self.errors.record_error(data)

    def record_network_request(self, data: Any) -> NetworkRequestRecord:
        return self.network.record_network_request(data)

    def subscribe(self, callback: ErrorSubscriber) -> Callable[[], None]:
        """Be notified of each new error. Returns an unsubscribe function."""
        return self.errors.subscribe(callback)

    def record_connection_start(self, net_id: str, label: Optional[str] = None) -> None:
        self.voice.record_connection_start(net_id, label)

    def record_connection_success(self, net_id: str) -> Optional[float]:
        return self.voice.record_connection_success(net_id)

    def record_reconnect_attempt(self, net_id: str, label: Optional[str] = None) -> int:
        return self.voice.record_reconnect_attempt(net_id, label)

    def record_latency_sample(self, net_id: str, latency_ms, label: Optional[str] = None) -> None:
        self.voice.record_latency_sample(net_id, latency_ms, label)

    # ── Auxiliary state ─────────────────────────────────────────────

    def record_subscription_heartbeat(
        self,
        net_id: Optional[str] = None,
        event_id: Optional[str] = None,
        status: Optional[str] = "ok",
    ) -> HeartbeatRecord:
        record = HeartbeatRecord(
            net_id=net_id, event_id=event_id, status=status, timestamp=self._clock()
        )
        self._heartbeats.push(record)
        return record

    def record_seed_wipe_run(
        self,
        step: Optional[str] = None,
        action: Optional[str] = None,
        status: Optional[str] = None,
        duration_ms: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> SeedWipeRecord:
        record = SeedWipeRecord(
            step=step,
            action=action,
            status=status,
            duration_ms=duration_ms,
            timestamp=self._clock(),
            details=_details_dict(details),
        )
        self._seed_runs.push(record)
        logger.debug(f"Seed/wipe {action} step {step}: {status}")
        return record

    def set_comms_mode(self, mode: str) -> None:
        self._comms_mode = ModeRecord(value=str(mode), timestamp=self._clock())

    def set_livekit_env(self, env: str) -> None:
        self._livekit_env = ModeRecord(value=str(env), timestamp=self._clock())

    def set_verbose_requests(self, enabled: bool) -> None:
        self.network.set_verbose(enabled)

    def get_verbose_requests_enabled(self) -> bool:
        return self.network.verbose

    # ── Queries ─────────────────────────────────────────────────────

    def get_recent_errors(self, limit: Optional[int] = 10, window_ms: Optional[int] = None) -> List[ErrorRecord]:
        return self.errors.get_recent_errors(limit, window_ms)

    def get_recent_comms_requests(self, limit: Optional[int] = 10) -> List[NetworkRequestRecord]:
        return self.network.get_recent_comms_requests(limit)

    def get_requests_per_minute(self) -> int:
        return self.network.get_requests_per_minute()

    def get_net_summaries(self) -> List[NetSummary]:
        return self.voice.get_net_summaries()

    def get_health_status(self) -> HealthStatus:
        return classify_health(
            recent_error_count=self.errors.count_recent(config.ERROR_WINDOW_MS),
            network_failure_count=self.network.count_failures(),
            recent_request_count=self.network.count_recent(config.REQUEST_WINDOW_MS),
            thresholds=self.thresholds,
        )

    def get_diagnostics_summary(self) -> DiagnosticsSnapshot:
        """Assemble a fresh snapshot of everything the collector knows."""
        heartbeats = self._heartbeats.all()
        seed_runs = self._seed_runs.all()
        return DiagnosticsSnapshot(
            health_status=self.get_health_status(),
            generated_at=self._clock(),
            last_heartbeat=heartbeats[0] if heartbeats else None,
            last_seed_wipe=seed_runs[0] if seed_runs else None,
            recent_errors=tuple(self.get_recent_errors(SUMMARY_ERROR_LIMIT)),
            requests_per_min=self.get_requests_per_minute(),
            comms_mode=self._comms_mode,
            livekit_env=self._livekit_env,
            verbose_requests=self.get_verbose_requests_enabled(),
            total_errors=self.errors.total_count,
            total_requests=self.network.total_count,
            comms_requests=tuple(self.get_recent_comms_requests(SUMMARY_COMMS_REQUEST_LIMIT)),
            net_summaries=tuple(self.get_net_summaries()),
        )


class NoopCollector:
    """
    Stand-in used when the real collector is unavailable.

    Accepts every call, stores nothing and always reports GREEN, so callers
    never have to check whether observability is active.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.network = NetworkInterceptor(capacity=0, verbose=False, comms_endpoints=(), clock=clock)

    def install(self) -> bool:
        return False

    def reset(self) -> None:
        pass

    def record_error(self, data: Any) -> None:
        return None

    def record_network_request(self, data: Any) -> None:
        return None

    def subscribe(self, callback: ErrorSubscriber) -> Callable[[], None]:
        return lambda: None

    def record_connection_start(self, net_id: str, label: Optional[str] = None) -> None:
        pass

    def record_connection_success(self, net_id: str) -> None:
        return None

    def record_reconnect_attempt(self, net_id: str, label: Optional[str] = None) -> int:
        return 0

    def record_latency_sample(self, net_id: str, latency_ms, label: Optional[str] = None) -> None:
        pass

    def record_subscription_heartbeat(self, net_id=None, event_id=None, status="ok") -> None:
        return None

    def record_seed_wipe_run(self, step=None, action=None, status=None, duration_ms=None, details=None) -> None:
        return None

    def set_comms_mode(self, mode: str) -> None:
        pass

    def set_livekit_env(self, env: str) -> None:
        pass

    def set_verbose_requests(self, enabled: bool) -> None:
        pass

    def get_verbose_requests_enabled(self) -> bool:
        return False

    def get_recent_errors(self, limit: Optional[int] = 10, window_ms: Optional[int] = None) -> List[ErrorRecord]:
        return []

    def get_recent_comms_requests(self, limit: Optional[int] = 10) -> List[NetworkRequestRecord]:
        return []

    def get_requests_per_minute(self) -> int:
        return 0

    def get_net_summaries(self) -> List[NetSummary]:
        return []

    def get_health_status(self) -> HealthStatus:
        return HealthStatus.GREEN

    def get_diagnostics_summary(self) -> DiagnosticsSnapshot:
        return DiagnosticsSnapshot(health_status=HealthStatus.GREEN, generated_at=self._clock())


Collector = Union[ObservabilityCollector, NoopCollector]

# Singleton
_collector: Optional[Collector] = None
_collector_lock = threading.Lock()


def _host_supports_collector() -> bool:
    """The collector needs the interpreter's excepthook signals."""
    return getattr(sys, "excepthook", None) is not None and hasattr(threading, "excepthook")


def _build_collector() -> Collector:
    if not config.OBSERVABILITY_ENABLED:
        logger.info("Observability disabled (COMMS_OBS_ENABLED=false), using no-op collector")
        return NoopCollector()
    if not _host_supports_collector():
        logger.warning("Host has no excepthook support, using no-op collector")
        return NoopCollector()
    try:
        collector = ObservabilityCollector()
        collector.install()
        return collector
    except Exception as e:
        logger.warning(f"Could not start observability collector, using no-op collector: {e}")
        return NoopCollector()


def get_collector() -> Collector:
    """Get or create the process-wide collector."""
    global _collector
    if _collector is None:
        with _collector_lock:
            if _collector is None:
                _collector = _build_collector()
    return _collector


def reset_collector() -> None:
    """Clear the process-wide collector's state without replacing it."""
    get_collector().reset()
