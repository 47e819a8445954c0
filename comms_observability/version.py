"""Version information for comms-observability."""

__version__ = "0.1.0"
