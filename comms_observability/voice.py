"""
Per-net voice connection telemetry.

Each voice net moves Idle -> Connecting -> Connected. The voice transport
reports those transitions plus periodic ping latencies; this module turns
them into connection times, reconnect counts and jitter.
"""

import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional

from . import config
from .ring_buffer import RingBuffer
from .types import NetSummary, NetTelemetry

logger = logging.getLogger("comms_observability")


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (math.isnan(value) or math.isinf(value))


class VoiceTelemetry:
    """
    Connection-quality metrics for every net seen this process.

    Entries are created on first observation and only removed by ``clear()``.
    At most one connection attempt is pending per net; a new start replaces
    it, and a success with nothing pending is ignored.
    """

    def __init__(
        self,
        connection_capacity: Optional[int] = None,
        latency_capacity: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.connection_capacity = (
            config.CONNECTION_SAMPLE_CAPACITY if connection_capacity is None else connection_capacity
        )
        self.latency_capacity = (
            config.LATENCY_SAMPLE_CAPACITY if latency_capacity is None else latency_capacity
        )
        self._clock = clock
        self._nets: Dict[str, NetTelemetry] = {}
        self._pending: Dict[str, float] = {}
        self._lock = threading.RLock()

    def _ensure_net(self, net_id: str, label: Optional[str] = None) -> NetTelemetry:
        net = self._nets.get(net_id)
        if net is None:
            net = NetTelemetry(
                net_id=net_id,
                net_label=label or net_id,
                connection_durations=RingBuffer(self.connection_capacity),
                latency_samples=RingBuffer(self.latency_capacity),
                jitter_samples=RingBuffer(self.latency_capacity),
            )
            self._nets[net_id] = net
            logger.debug(f"Tracking voice net {net_id} ({net.net_label})")
        elif label:
            net.net_label = label
        return net

    def record_connection_start(self, net_id: str, label: Optional[str] = None) -> None:
        """Mark a connection attempt as pending, replacing any earlier one."""
        with self._lock:
            self._ensure_net(net_id, label)
            if net_id in self._pending:
                logger.debug(f"Replacing pending connection attempt for {net_id}")
            self._pending[net_id] = self._clock()

    def record_connection_success(self, net_id: str) -> Optional[float]:
        """
        Complete the pending attempt for a net.

        Returns:
            Elapsed milliseconds, or None if no attempt was pending
        """
        with self._lock:
            started = self._pending.pop(net_id, None)
            if started is None:
                logger.debug(f"Connection success for {net_id} with no pending attempt")
                return None
            elapsed_ms = max((self._clock() - started) * 1000.0, 0.0)
            self._ensure_net(net_id).connection_durations.push(elapsed_ms)
        logger.debug(f"Voice net {net_id} connected in {elapsed_ms:.0f}ms")
        return elapsed_ms

    def record_reconnect_attempt(self, net_id: str, label: Optional[str] = None) -> int:
        with self._lock:
            net = self._ensure_net(net_id, label)
            net.reconnect_attempts += 1
            return net.reconnect_attempts

    def record_latency_sample(self, net_id: str, latency_ms, label: Optional[str] = None) -> None:
        """
        Add a ping latency and derive jitter from the previous sample.

        Non-numeric and NaN values are ignored. The first sample only seeds
        ``last_latency``; every later one also records
        ``|latency - last_latency|`` as jitter.
        """
        if not _is_number(latency_ms):
            logger.debug(f"Ignoring non-numeric latency for {net_id}: {latency_ms!r}")
            return
        latency = float(latency_ms)
        with self._lock:
            net = self._ensure_net(net_id, label)
            net.latency_samples.push(latency)
            if net.last_latency is not None:
                net.jitter_samples.push(abs(latency - net.last_latency))
            net.last_latency = latency

    def is_pending(self, net_id: str) -> bool:
        return net_id in self._pending

    def get_net(self, net_id: str) -> Optional[NetTelemetry]:
        return self._nets.get(net_id)

    def get_net_summaries(self) -> List[NetSummary]:
        """One summary per net, in the order nets were first seen."""
        with self._lock:
            nets = list(self._nets.values())
        summaries = []
        for net in nets:
            latencies = net.latency_samples.all()
            summaries.append(NetSummary(
                net_id=net.net_id,
                net_code=net.net_label,
                avg_connection_time=_mean(net.connection_durations.all()),
                avg_jitter=_mean(net.jitter_samples.all()),
                reconnect_attempts=net.reconnect_attempts,
                sample_count=len(latencies),
                avg_latency=_mean(latencies),
                last_latency=net.last_latency,
            ))
        return summaries

    def clear(self) -> None:
        with self._lock:
            self._nets.clear()
            self._pending.clear()
