"""
comms-observability - client-side diagnostics for comms and voice connectivity

This package collects, for the lifetime of the process:
- Uncaught errors and unhandled asyncio task exceptions
- Outbound HTTP calls made through an instrumented httpx client
- Per-net voice connection timing, reconnects, latency and jitter

and exposes them as a single DiagnosticsSnapshot with a GREEN/AMBER/RED
health signal. Nothing is persisted or sent anywhere.
"""

from .version import __version__

from .collector import (
    NoopCollector,
    ObservabilityCollector,
    get_collector,
    reset_collector,
)
from .errors import ErrorCapture
from .health import HealthThresholds, classify_health
from .network import AsyncInterceptingTransport, InterceptingTransport, NetworkInterceptor
from .privacy import is_comms_endpoint, resolve_url, sanitize_url
from .report import format_diagnostics
from .ring_buffer import RingBuffer
from .types import (
    DiagnosticsSnapshot,
    ErrorKind,
    ErrorRecord,
    HealthStatus,
    HeartbeatRecord,
    ModeRecord,
    NetSummary,
    NetTelemetry,
    NetworkRequestRecord,
    SeedWipeRecord,
)
from .voice import VoiceTelemetry
from .voice_transport import VoiceTransportListener

__all__ = [
    "__version__",
    # Collector
    "ObservabilityCollector",
    "NoopCollector",
    "get_collector",
    "reset_collector",
    # Components
    "ErrorCapture",
    "NetworkInterceptor",
    "InterceptingTransport",
    "AsyncInterceptingTransport",
    "VoiceTelemetry",
    "VoiceTransportListener",
    "RingBuffer",
    # Health
    "HealthThresholds",
    "classify_health",
    # Helpers
    "sanitize_url",
    "resolve_url",
    "is_comms_endpoint",
    "format_diagnostics",
    # Types
    "DiagnosticsSnapshot",
    "ErrorKind",
    "ErrorRecord",
    "HealthStatus",
    "HeartbeatRecord",
    "ModeRecord",
    "NetSummary",
    "NetTelemetry",
    "NetworkRequestRecord",
    "SeedWipeRecord",
]
