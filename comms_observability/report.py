"""Plain-text rendering of a diagnostics snapshot."""

from datetime import datetime
from typing import Optional

from .types import DiagnosticsSnapshot, HealthStatus

HEALTH_LABELS = {
    HealthStatus.GREEN: "NOMINAL",
    HealthStatus.AMBER: "CAUTION",
    HealthStatus.RED: "ALERT",
}


def health_label(status: Optional[HealthStatus]) -> str:
    return HEALTH_LABELS.get(status, "UNKNOWN")


def _clock_time(timestamp: Optional[float]) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%H:%M:%S")


def _ms(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.0f}ms"


def format_diagnostics(snapshot: DiagnosticsSnapshot) -> str:
    """Render a snapshot the way the admin diagnostics drawer lays it out."""
    lines = []
    lines.append(f"Observability: {health_label(snapshot.health_status)}")
    lines.append("=" * 60)

    lines.append(f"  Errors (5m):     {len(snapshot.recent_errors)}")
    lines.append(f"  Requests/min:    {snapshot.requests_per_min}")
    lines.append(f"  Total errors:    {snapshot.total_errors}")
    lines.append(f"  Total requests:  {snapshot.total_requests}")
    lines.append(f"  Verbose requests: {'on' if snapshot.verbose_requests else 'off'}")
    lines.append("")

    heartbeat = snapshot.last_heartbeat
    if heartbeat:
        lines.append(
            f"Last heartbeat: net={heartbeat.net_id or '-'} event={heartbeat.event_id or '-'} "
            f"status={heartbeat.status or '-'} at {_clock_time(heartbeat.timestamp)}"
        )
    else:
        lines.append("Last heartbeat: idle")

    seed = snapshot.last_seed_wipe
    if seed:
        lines.append(
            f"Last seed/wipe: {(seed.status or 'unknown').upper()} {seed.action or '-'} "
            f"step={seed.step or '-'} duration={_ms(seed.duration_ms)} at {_clock_time(seed.timestamp)}"
        )
    else:
        lines.append("Last seed/wipe: none")

    mode = snapshot.comms_mode
    lines.append(f"Comms mode: {mode.value.upper() if mode else 'UNKNOWN'}")
    env = snapshot.livekit_env
    lines.append(f"LiveKit: {env.value if env else 'UNKNOWN'}")
    lines.append("")

    if snapshot.recent_errors:
        lines.append(f"Recent errors ({len(snapshot.recent_errors)}):")
        for error in snapshot.recent_errors:
            where = f" [{error.source_location}]" if error.source_location else ""
            lines.append(f"  {error.kind.value}: {error.message or '(no message)'}{where}")
    else:
        lines.append("No errors in last 5 minutes")

    if snapshot.comms_requests:
        lines.append("")
        lines.append("Comms requests:")
        for request in snapshot.comms_requests:
            status = request.status_code or "FAILED"
            lines.append(f"  {request.method or 'GET'} {request.url} -> {status} ({_ms(request.duration_ms)})")

    if snapshot.net_summaries:
        lines.append("")
        lines.append("Voice nets:")
        for net in snapshot.net_summaries:
            lines.append(
                f"  {net.net_code}: connect {_ms(net.avg_connection_time)}, "
                f"jitter {_ms(net.avg_jitter)}, reconnects {net.reconnect_attempts}, "
                f"samples {net.sample_count}"
            )

    return "\n".join(lines)
