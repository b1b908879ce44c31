"""Protocol definitions for the hub channel and command callbacks."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol

from .models import CommandRequest, CommandResponse, TelemetrySample


CommandHandler = Callable[
    [CommandRequest], Awaitable[CommandResponse] | CommandResponse
]
ConnectionStatusHandler = Callable[[bool], None]


class HubChannel(Protocol):
    """Minimal contract for the device-to-cloud messaging transport."""

    async def connect(self) -> None:
        """Open the connection to the hub."""
        ...

    async def disconnect(self) -> None:
        """Close the connection and release SDK resources."""
        ...

    async def send_telemetry(self, sample: TelemetrySample) -> None:
        """Send a telemetry sample and wait for the hub acknowledgement.

        Raises:
            HubConnectionError: If the hub rejects or drops the message.
        """
        ...

    async def register_command_handler(
        self, name: str, handler: CommandHandler
    ) -> None:
        """Route remote invocations of ``name`` to ``handler``."""
        ...

    def set_connection_status_handler(
        self, handler: Optional[ConnectionStatusHandler]
    ) -> None:
        """Install the callback notified when connectivity changes."""
        ...
