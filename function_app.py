"""Azure Functions entry point relaying IoT Hub telemetry to the gauge API."""

import logging
import os

import azure.functions as func

from reactor_iot import constants
from reactor_iot.adapters import GaugeClient
from reactor_iot.relay import RelayOutcome, relay_temperature

app = func.FunctionApp()

# Shared across invocations on the same worker so the connection pool is reused.
_gauge = GaugeClient(
    os.environ.get(constants.GAUGE_BASE_URL_SETTING, constants.DEFAULT_GAUGE_BASE_URL),
    timeout_seconds=float(
        os.environ.get(
            constants.GAUGE_TIMEOUT_SETTING, constants.DEFAULT_GAUGE_TIMEOUT_SECONDS
        )
    ),
)


async def relay_event(event: func.EventHubEvent) -> RelayOutcome:
    outcome = await relay_temperature(event.get_body(), _gauge)
    logging.debug("Relay outcome: %s", outcome.value)
    return outcome


@app.function_name(name="readIoThubTemperature")
@app.event_hub_message_trigger(
    arg_name="event",
    event_hub_name=constants.IOTHUB_EVENTS_PATH,
    connection=constants.IOTHUB_TRIGGER_CONNECTION,
)
async def read_iothub_temperature(event: func.EventHubEvent) -> None:
    await relay_event(event)
