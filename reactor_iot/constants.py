"""Constants used across the reactor-iot package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "reactor-iot"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".reactor-iot" / DEFAULT_CONFIG_FILENAME

# DTDL interface: dtmi/com/example/temperaturecontroller-2.json
MODEL_ID = "dtmi:com:example:TemperatureController;2"

THERMOSTAT_COMPONENT = "thermostat1"
TEMPERATURE_TELEMETRY = "temperature"
WORKING_SET_TELEMETRY = "WorkingSet_DeviceMemory"

DEFAULT_TELEMETRY_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_TEMPERATURE = 500

CONNECTION_STRING_ENV = "IOTHUB_DEVICE_CONNECTION_STRING"

DEFAULT_GAUGE_BASE_URL = "http://localhost:61022"
DEFAULT_GAUGE_TIMEOUT_SECONDS = 5.0
GAUGE_BASE_URL_SETTING = "GAUGE_BASE_URL"
GAUGE_TIMEOUT_SETTING = "GAUGE_TIMEOUT_SECONDS"

IOTHUB_EVENTS_PATH = "messages/events"
IOTHUB_TRIGGER_CONNECTION = "IoTHubTriggerConnection"
