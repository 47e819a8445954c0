"""Shared test fixtures and configuration for comms-observability tests."""

import sys
import threading
from pathlib import Path

import pytest

# Add comms_observability to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from comms_observability import collector as collector_module
from comms_observability.collector import ObservabilityCollector


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0.0, ms: float = 0.0) -> None:
        self.now += seconds + ms / 1000.0


@pytest.fixture
def clock():
    """A fake clock starting at a fixed epoch time."""
    return FakeClock()


@pytest.fixture
def collector(clock):
    """A fresh collector with verbose request recording off."""
    return ObservabilityCollector(clock=clock, verbose_requests=False)


@pytest.fixture
def quiet_hooks(monkeypatch):
    """
    Replace the interpreter's exception hooks with no-ops for the test.

    Error capture chains to whatever hook was installed before it; this keeps
    simulated uncaught errors from printing tracebacks and restores the real
    hooks afterwards.
    """
    calls = []
    monkeypatch.setattr(sys, "excepthook", lambda *args: calls.append(args))
    monkeypatch.setattr(threading, "excepthook", lambda args: calls.append(args))
    return calls


@pytest.fixture
def fresh_singleton(monkeypatch, quiet_hooks):
    """Clear the process-wide collector before and after the test."""
    monkeypatch.setattr(collector_module, "_collector", None)
    yield
    current = collector_module._collector
    if isinstance(current, ObservabilityCollector):
        current.errors.uninstall()
