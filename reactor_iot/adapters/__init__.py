"""Adapter modules for external integrations."""

from .gauge import GaugeClient, GaugeResult, GaugeTransportError
from .hub import HubConnectionError, IoTHubChannel, build_telemetry_message

__all__ = [
    "GaugeClient",
    "GaugeResult",
    "GaugeTransportError",
    "HubConnectionError",
    "IoTHubChannel",
    "build_telemetry_message",
]
