import asyncio
from configparser import ConfigParser
from pathlib import Path
from typing import Callable, Optional

import pytest

from reactor_iot.adapters import HubConnectionError
from reactor_iot.config import (
    HealthConfig,
    HubConfig,
    LoggingConfig,
    ReactorConfig,
    RelayConfig,
    TelemetryConfig,
)
from reactor_iot.core import CommandHandler, TelemetrySample


class FakeHub:
    """In-memory hub channel recording everything the agent sends."""

    def __init__(
        self,
        *,
        fail_on_send: Optional[int] = None,
        on_send: Optional[Callable[[TelemetrySample], None]] = None,
    ) -> None:
        self.sent: list[TelemetrySample] = []
        self.handlers: dict[str, CommandHandler] = {}
        self.status_handler = None
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._fail_on_send = fail_on_send
        self._on_send = on_send

    async def connect(self) -> None:
        self.connect_calls += 1
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    async def send_telemetry(self, sample: TelemetrySample) -> None:
        if self._fail_on_send is not None and len(self.sent) >= self._fail_on_send:
            raise HubConnectionError("send rejected")
        await asyncio.sleep(0)
        self.sent.append(sample)
        if self._on_send is not None:
            self._on_send(sample)

    async def register_command_handler(self, name: str, handler) -> None:
        self.handlers[name] = handler

    def set_connection_status_handler(self, handler) -> None:
        self.status_handler = handler


def build_config(
    *,
    interval_seconds: float = 0.01,
    connection_string: Optional[str] = "HostName=hub.example.net;DeviceId=dev;SharedAccessKey=a2V5",
    gauge_base_url: str = "http://gauge.example",
) -> ReactorConfig:
    return ReactorConfig(
        hub=HubConfig(connection_string=connection_string),
        telemetry=TelemetryConfig(interval_seconds=interval_seconds),
        relay=RelayConfig(gauge_base_url=gauge_base_url),
        logging=LoggingConfig(),
        health=HealthConfig(),
        raw=ConfigParser(),
        path=Path("reactor-iot.cfg"),
    )


@pytest.fixture
def fake_hub() -> FakeHub:
    return FakeHub()
