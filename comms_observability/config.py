"""
Configuration for comms-observability.

All settings are read once from ``COMMS_OBS_*`` environment variables when
the module is imported. Tests that change the environment should call
``importlib.reload`` on this module.
"""

import logging
import os
from typing import List, Tuple

logger = logging.getLogger("comms_observability")

DEV_ENVIRONMENTS = ("development", "dev", "local", "test")

DEFAULT_COMMS_ENDPOINTS: Tuple[str, ...] = (
    "generateLiveKitToken",   # voice token issuance
    "mintVoiceToken",
    "getLiveKitRoomStatus",   # room status query
    "scanReadiness",          # readiness check
)


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def env_int(name: str, default: int) -> int:
    """Read a positive integer, falling back to the default on bad input."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default
    if parsed < 0:
        logger.warning(f"Negative value for {name}: {value!r}, using {default}")
        return default
    return parsed


def env_float(name: str, default: float) -> float:
    """Read a float, falling back to the default on bad input."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {value!r}, using {default}")
        return default


def env_list(name: str, default: Tuple[str, ...]) -> List[str]:
    """Read a comma separated list, ignoring empty entries."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


# General
OBSERVABILITY_ENABLED = env_bool("COMMS_OBS_ENABLED", True)
ENVIRONMENT = os.environ.get("COMMS_OBS_ENV", "production").strip().lower() or "production"
LOG_LEVEL = os.environ.get("COMMS_OBS_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"

# Network recording policy
VERBOSE_REQUESTS = env_bool("COMMS_OBS_VERBOSE_REQUESTS", ENVIRONMENT in DEV_ENVIRONMENTS)
COMMS_ENDPOINTS = env_list("COMMS_OBS_COMMS_ENDPOINTS", DEFAULT_COMMS_ENDPOINTS)
BASE_URL = os.environ.get("COMMS_OBS_BASE_URL", "").strip()

# Buffer capacities
ERROR_CAPACITY = env_int("COMMS_OBS_ERROR_CAPACITY", 50)
REQUEST_CAPACITY = env_int("COMMS_OBS_REQUEST_CAPACITY", 100)
HEARTBEAT_CAPACITY = env_int("COMMS_OBS_HEARTBEAT_CAPACITY", 20)
SEED_RUN_CAPACITY = env_int("COMMS_OBS_SEED_RUN_CAPACITY", 10)
CONNECTION_SAMPLE_CAPACITY = env_int("COMMS_OBS_CONNECTION_SAMPLES", 20)
LATENCY_SAMPLE_CAPACITY = env_int("COMMS_OBS_LATENCY_SAMPLES", 50)

# Time windows (milliseconds)
ERROR_WINDOW_MS = env_int("COMMS_OBS_ERROR_WINDOW_MS", 300_000)
REQUEST_WINDOW_MS = env_int("COMMS_OBS_REQUEST_WINDOW_MS", 60_000)

# Health thresholds
HEALTH_GREEN_MAX_ERRORS = env_int("COMMS_OBS_HEALTH_GREEN_MAX_ERRORS", 0)
HEALTH_GREEN_MAX_FAILURES = env_int("COMMS_OBS_HEALTH_GREEN_MAX_FAILURES", 2)
HEALTH_AMBER_MAX_ERRORS = env_int("COMMS_OBS_HEALTH_AMBER_MAX_ERRORS", 3)
HEALTH_AMBER_MIN_FAILURES = env_int("COMMS_OBS_HEALTH_AMBER_MIN_FAILURES", 2)
HEALTH_AMBER_FAILURE_RATIO = env_float("COMMS_OBS_HEALTH_AMBER_FAILURE_RATIO", 0.5)


def is_dev_environment() -> bool:
    """True when running in a development-like environment."""
    return ENVIRONMENT in DEV_ENVIRONMENTS
