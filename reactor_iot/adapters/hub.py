"""IoT Hub adapter encapsulating azure-iot-device client usage."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from azure.iot.device import Message, MethodResponse
from azure.iot.device.aio import IoTHubDeviceClient
from azure.iot.device.exceptions import ClientError

from ..commands import CommandRouter
from ..config import HubConfig
from ..core import (
    CommandHandler,
    CommandRequest,
    ConnectionStatusHandler,
    TelemetrySample,
)

LOGGER = logging.getLogger(__name__)

# Message property IoT plug and play uses to address a component.
COMPONENT_PROPERTY = "$.sub"


class HubConnectionError(RuntimeError):
    """Raised when the hub connection or a send operation fails."""


def build_telemetry_message(sample: TelemetrySample) -> Message:
    """Build a plug and play telemetry message for ``sample``."""

    message = Message(
        json.dumps(sample.as_payload()),
        content_encoding="utf-8",
        content_type="application/json",
    )
    if sample.component_name:
        message.custom_properties[COMPONENT_PROPERTY] = sample.component_name
    return message


class IoTHubChannel:
    """Async hub channel over the IoT Hub device SDK.

    The SDK exposes a single method request callback slot, so command
    handlers are kept in a :class:`CommandRouter` and dispatched from there.
    """

    def __init__(
        self,
        config: HubConfig,
        *,
        router: Optional[CommandRouter] = None,
    ) -> None:
        self.config = config
        self._router = router or CommandRouter()
        self._client: Optional[IoTHubDeviceClient] = None
        self._status_handler: Optional[ConnectionStatusHandler] = None

    @property
    def router(self) -> CommandRouter:
        return self._router

    def is_connected(self) -> bool:
        return bool(self._client is not None and self._client.connected)

    async def connect(self) -> None:
        """Create the SDK client and wait for the connection to open."""

        if not self.config.connection_string:
            raise HubConnectionError("IoT Hub connection string not configured")

        client = IoTHubDeviceClient.create_from_connection_string(
            self.config.connection_string,
            product_info=self.config.model_id,
            websockets=self.config.websockets,
        )
        client.on_method_request_received = self._on_method_request
        client.on_connection_state_change = self._on_connection_state_change
        self._client = client

        LOGGER.info("Connecting to IoT Hub (model %s)", self.config.model_id)
        try:
            await asyncio.wait_for(
                client.connect(), timeout=self.config.connect_timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            await self._shutdown_client()
            raise HubConnectionError("Timed out connecting to IoT Hub") from exc
        except ClientError as exc:
            await self._shutdown_client()
            raise HubConnectionError(f"IoT Hub connection failed: {exc}") from exc

        LOGGER.info("Connected to IoT Hub")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._shutdown_client()
        LOGGER.info("Disconnected from IoT Hub")

    async def send_telemetry(self, sample: TelemetrySample) -> None:
        if self._client is None:
            raise HubConnectionError("IoT Hub client not connected")

        try:
            await self._client.send_message(build_telemetry_message(sample))
        except ClientError as exc:
            raise HubConnectionError(f"Telemetry send failed: {exc}") from exc

    async def register_command_handler(
        self, name: str, handler: CommandHandler
    ) -> None:
        self._router.register(name, handler)

    def set_connection_status_handler(
        self, handler: Optional[ConnectionStatusHandler]
    ) -> None:
        self._status_handler = handler

    async def _shutdown_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            await client.shutdown()
        except ClientError:
            LOGGER.debug("Error shutting down IoT Hub client", exc_info=True)

    # ------------------------------------------------------------------
    # SDK callbacks
    # ------------------------------------------------------------------
    async def _on_method_request(self, method_request) -> None:
        request = CommandRequest(
            request_id=method_request.request_id,
            name=method_request.name,
            payload=method_request.payload,
        )
        response = await self._router.dispatch(request)

        payload = None
        if response.payload is not None:
            payload = json.loads(response.payload.decode("utf-8"))

        method_response = MethodResponse.create_from_method_request(
            method_request, int(response.status), payload
        )
        client = self._client
        if client is None:
            LOGGER.warning(
                "Dropping response to '%s'; hub client closed", request.name
            )
            return

        try:
            await client.send_method_response(method_response)
        except ClientError:
            LOGGER.exception("Failed to send response for command '%s'", request.name)

    def _on_connection_state_change(self) -> None:
        connected = self.is_connected()
        LOGGER.debug("Connection status change registered - connected=%s.", connected)
        handler = self._status_handler
        if handler is not None:
            handler(connected)
