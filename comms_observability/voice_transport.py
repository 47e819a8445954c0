"""Bridge from voice transport events to the collector's voice telemetry.

The voice transport (LiveKit client wrapper) emits named events through an
``on(event, handler)`` API. ``VoiceTransportListener`` turns those events into
``record_connection_start`` / ``record_connection_success`` /
``record_reconnect_attempt`` / ``record_latency_sample`` calls for one net.

The LiveKit wrapper emits ``connected``, ``reconnecting``, ``reconnected``
and ``telemetry`` but no ``connecting`` event, so the first connection is
only timed if the caller marks its start:

    listener = VoiceTransportListener(collector, "ALPHA", "Alpha Net")
    listener.attach(transport)
    listener.begin()
    await transport.connect(url, token)
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger("comms_observability")

LATENCY_KEYS = ("rttMs", "rtt_ms", "latency_ms", "latencyMs")


class VoiceTransportListener:
    """Records connection timing and ping latency for a single net."""

    def __init__(self, collector, net_id: str, label: Optional[str] = None):
        self.collector = collector
        self.net_id = net_id
        self.label = label
        self._attached: List[Tuple[Any, str, Callable]] = []

    def begin(self) -> None:
        """Mark the start of a connection attempt. Call right before ``connect()``."""
        self.handle("connecting")

    def on_connecting(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.collector.record_connection_start(self.net_id, self.label)

    def on_connected(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.collector.record_connection_success(self.net_id)

    def on_reconnecting(self, data: Optional[Dict[str, Any]] = None) -> None:
        # A reconnect is also a fresh connection attempt
        self.collector.record_reconnect_attempt(self.net_id, self.label)
        self.collector.record_connection_start(self.net_id, self.label)

    def on_telemetry(self, data: Optional[Dict[str, Any]] = None) -> None:
        if not data:
            return
        for key in LATENCY_KEYS:
            if key in data:
                self.collector.record_latency_sample(self.net_id, data[key], self.label)
                return
        logger.debug(f"Telemetry event for {self.net_id} without latency: {sorted(data)}")

    def handlers(self) -> Dict[str, Callable]:
        """Event name to handler mapping."""
        return {
            "connecting": self.on_connecting,
            "connected": self.on_connected,
            "reconnecting": self.on_reconnecting,
            "reconnected": self.on_connected,
            "telemetry": self.on_telemetry,
        }

    def handle(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Dispatch one event by name. Unknown events are ignored."""
        handler = self.handlers().get(event)
        if handler is None:
            logger.debug(f"Voice transport event not tracked: {event}")
            return
        try:
            handler(data)
        except Exception as e:
            logger.warning(f"Failed to record voice event {event} for {self.net_id}: {e}")

    def attach(self, transport) -> None:
        """Register on a transport exposing ``on(event, handler)``."""
        for event in self.handlers():
            def callback(data=None, _event=event):
                self.handle(_event, data)
            transport.on(event, callback)
            self._attached.append((transport, event, callback))

    def detach(self) -> None:
        """Remove handlers from transports that expose ``off(event, handler)``."""
        for transport, event, callback in self._attached:
            off = getattr(transport, "off", None)
            if off is not None:
                off(event, callback)
        self._attached = []
