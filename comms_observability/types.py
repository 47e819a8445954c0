"""Shared record and snapshot types for comms-observability."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .ring_buffer import RingBuffer


class ErrorKind(str, Enum):
    """Where a captured error came from."""
    UNCAUGHT = "uncaught"                        # sys.excepthook / threading.excepthook
    UNHANDLED_REJECTION = "unhandled_rejection"  # asyncio loop exception handler


class HealthStatus(str, Enum):
    """Three-state health signal shown on the diagnostics panel."""
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


@dataclass(frozen=True)
class ErrorRecord:
    """A normalized runtime error."""
    kind: ErrorKind
    message: Optional[str]
    captured_at: float                       # epoch seconds
    error_type: Optional[str] = None         # exception class name, when known
    source_location: Optional[str] = None    # "file:line"
    stack_trace: Optional[str] = None


@dataclass(frozen=True)
class NetworkRequestRecord:
    """Outcome of one outbound HTTP call."""
    url: str                                 # sanitized, no query string
    status_code: int                         # 0 = transport failure
    duration_ms: float
    captured_at: float
    error: Optional[str] = None
    method: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status_code == 0 or self.status_code >= 500


@dataclass
class NetTelemetry:
    """Connection-quality history for one voice net."""
    net_id: str
    net_label: str
    connection_durations: RingBuffer
    latency_samples: RingBuffer
    jitter_samples: RingBuffer
    reconnect_attempts: int = 0
    last_latency: Optional[float] = None


@dataclass(frozen=True)
class NetSummary:
    """Averages for one net, computed over current buffer contents."""
    net_id: str
    net_code: str
    avg_connection_time: Optional[float]
    avg_jitter: Optional[float]
    reconnect_attempts: int
    sample_count: int
    avg_latency: Optional[float] = None
    last_latency: Optional[float] = None


@dataclass(frozen=True)
class HeartbeatRecord:
    """Last-seen signal from a realtime subscription."""
    net_id: Optional[str]
    event_id: Optional[str]
    status: Optional[str]
    timestamp: float


@dataclass(frozen=True)
class SeedWipeRecord:
    """One step of a seed or wipe run."""
    step: Optional[str]
    action: Optional[str]
    status: Optional[str]
    duration_ms: Optional[float]
    timestamp: float
    details: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ModeRecord:
    """A single-slot mode value (comms mode, LiveKit environment)."""
    value: str
    timestamp: float


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    """
    Point-in-time view of all collector state.

    Built fresh by ``get_diagnostics_summary``; never cached or persisted.
    """
    health_status: HealthStatus
    generated_at: float
    last_heartbeat: Optional[HeartbeatRecord] = None
    last_seed_wipe: Optional[SeedWipeRecord] = None
    recent_errors: Tuple[ErrorRecord, ...] = field(default_factory=tuple)
    requests_per_min: int = 0
    comms_mode: Optional[ModeRecord] = None
    livekit_env: Optional[ModeRecord] = None
    verbose_requests: bool = False
    total_errors: int = 0
    total_requests: int = 0
    comms_requests: Tuple[NetworkRequestRecord, ...] = field(default_factory=tuple)
    net_summaries: Tuple[NetSummary, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form (enums become their string values)."""
        data = asdict(self)
        data["health_status"] = self.health_status.value
        data["recent_errors"] = [
            {**error, "kind": ErrorKind(error["kind"]).value}
            for error in data["recent_errors"]
        ]
        return data
