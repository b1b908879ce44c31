"""Core primitives for reactor-iot."""

from .models import (
    CommandRequest,
    CommandResponse,
    CommandStatus,
    MalformedMessage,
    MalformedPayload,
    RelayMessage,
    TelemetrySample,
)
from .protocols import CommandHandler, ConnectionStatusHandler, HubChannel

__all__ = [
    "CommandHandler",
    "CommandRequest",
    "CommandResponse",
    "CommandStatus",
    "ConnectionStatusHandler",
    "HubChannel",
    "MalformedMessage",
    "MalformedPayload",
    "RelayMessage",
    "TelemetrySample",
]
