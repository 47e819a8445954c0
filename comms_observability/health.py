"""
Health classification.

A pure function of three counts; the collector recomputes it on every
request and never caches the result.
"""

from dataclasses import dataclass

from . import config
from .types import HealthStatus


@dataclass(frozen=True)
class HealthThresholds:
    """Tunable limits for ``classify_health``."""
    green_max_errors: int = 0        # GREEN: errors <= this
    green_max_failures: int = 2      # GREEN: failures < this
    amber_max_errors: int = 3        # AMBER: errors <= this
    amber_min_failures: int = 2      # AMBER: failures > this ...
    amber_failure_ratio: float = 0.5  # ... and failures < ratio * recent requests

    @classmethod
    def from_config(cls) -> "HealthThresholds":
        return cls(
            green_max_errors=config.HEALTH_GREEN_MAX_ERRORS,
            green_max_failures=config.HEALTH_GREEN_MAX_FAILURES,
            amber_max_errors=config.HEALTH_AMBER_MAX_ERRORS,
            amber_min_failures=config.HEALTH_AMBER_MIN_FAILURES,
            amber_failure_ratio=config.HEALTH_AMBER_FAILURE_RATIO,
        )


DEFAULT_THRESHOLDS = HealthThresholds()


def classify_health(
    recent_error_count: int,
    network_failure_count: int,
    recent_request_count: int,
    thresholds: HealthThresholds = DEFAULT_THRESHOLDS,
) -> HealthStatus:
    """
    Classify collector state as GREEN, AMBER or RED.

    Rules are checked in order:
      1. GREEN if there are no recent errors and fewer than 2 network failures.
      2. AMBER if there are at most 3 recent errors, or if there are more than
         2 failures and they are under half of the recent requests.
      3. RED otherwise.

    With no recent requests the failure-ratio clause is false, so only the
    error count can make the state AMBER.

    Args:
        recent_error_count: Errors captured in the last 5 minutes
        network_failure_count: Buffered requests with status 0 or >= 500
        recent_request_count: Requests recorded in the last minute
        thresholds: Limits to apply

    Returns:
        HealthStatus

    Examples:
        >>> classify_health(0, 0, 0)
        <HealthStatus.GREEN: 'green'>
        >>> classify_health(2, 1, 0)
        <HealthStatus.AMBER: 'amber'>
        >>> classify_health(5, 0, 0)
        <HealthStatus.RED: 'red'>
    """
    if (
        recent_error_count <= thresholds.green_max_errors
        and network_failure_count < thresholds.green_max_failures
    ):
        return HealthStatus.GREEN

    ratio_clause = False
    if recent_request_count > 0:
        ratio_clause = (
            network_failure_count > thresholds.amber_min_failures
            and network_failure_count < thresholds.amber_failure_ratio * recent_request_count
        )

    if recent_error_count <= thresholds.amber_max_errors or ratio_clause:
        return HealthStatus.AMBER

    return HealthStatus.RED
