"""Configuration loader for reactor-iot."""

from __future__ import annotations

import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from . import constants


class ConfigurationError(RuntimeError):
    """Raised when required configuration values are missing."""


@dataclass(slots=True)
class HubConfig:
    connection_string: Optional[str] = None
    model_id: str = constants.MODEL_ID
    websockets: bool = False
    connect_timeout_seconds: float = 30.0


@dataclass(slots=True)
class TelemetryConfig:
    component_name: str = constants.THERMOSTAT_COMPONENT
    interval_seconds: float = constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS
    max_temperature: int = constants.DEFAULT_MAX_TEMPERATURE


@dataclass(slots=True)
class RelayConfig:
    gauge_base_url: str = constants.DEFAULT_GAUGE_BASE_URL
    timeout_seconds: float = constants.DEFAULT_GAUGE_TIMEOUT_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class ReactorConfig:
    hub: HubConfig
    telemetry: TelemetryConfig
    relay: RelayConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path

    def require_connection_string(self) -> str:
        value = self.hub.connection_string
        if not value:
            raise ConfigurationError(
                "IoT Hub device connection string not configured; set [hub] "
                f"connection_string or {constants.CONNECTION_STRING_ENV}"
            )
        return value


def load_config(
    path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None
) -> ReactorConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    parser = ConfigParser()
    parser.read_dict(
        {
            "hub": {
                "connection_string": "",
                "model_id": constants.MODEL_ID,
                "websockets": "false",
                "connect_timeout_seconds": "30.0",
            },
            "telemetry": {
                "component_name": constants.THERMOSTAT_COMPONENT,
                "interval_seconds": str(constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS),
                "max_temperature": str(constants.DEFAULT_MAX_TEMPERATURE),
            },
            "relay": {
                "gauge_base_url": constants.DEFAULT_GAUGE_BASE_URL,
                "timeout_seconds": str(constants.DEFAULT_GAUGE_TIMEOUT_SECONDS),
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    # Credentials are normally injected through the environment rather than
    # written to the config file.
    connection_string = parser.get("hub", "connection_string", fallback="").strip()
    if not connection_string:
        connection_string = env.get(constants.CONNECTION_STRING_ENV, "").strip()

    hub = HubConfig(
        connection_string=connection_string or None,
        model_id=parser.get("hub", "model_id", fallback=constants.MODEL_ID),
        websockets=_get_bool(parser, "hub", "websockets", False),
        connect_timeout_seconds=max(
            1.0,
            _get_float(
                parser,
                "hub",
                "connect_timeout_seconds",
                HubConfig().connect_timeout_seconds,
            ),
        ),
    )

    telemetry_defaults = TelemetryConfig()
    telemetry = TelemetryConfig(
        component_name=parser.get(
            "telemetry", "component_name", fallback=telemetry_defaults.component_name
        ),
        interval_seconds=max(
            0.1,
            _get_float(
                parser,
                "telemetry",
                "interval_seconds",
                telemetry_defaults.interval_seconds,
            ),
        ),
        max_temperature=max(
            1,
            _get_int(
                parser,
                "telemetry",
                "max_temperature",
                telemetry_defaults.max_temperature,
            ),
        ),
    )

    relay_timeout = _get_float(
        parser, "relay", "timeout_seconds", constants.DEFAULT_GAUGE_TIMEOUT_SECONDS
    )
    relay = RelayConfig(
        gauge_base_url=parser.get(
            "relay", "gauge_base_url", fallback=constants.DEFAULT_GAUGE_BASE_URL
        ),
        timeout_seconds=(
            relay_timeout
            if relay_timeout > 0
            else constants.DEFAULT_GAUGE_TIMEOUT_SECONDS
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=_get_bool(parser, "logging", "log_network", False),
    )

    health = HealthConfig(
        enabled=_get_bool(parser, "health", "enabled", False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=max(0, _get_int(parser, "health", "port", HealthConfig().port)),
    )

    return ReactorConfig(
        hub=hub,
        telemetry=telemetry,
        relay=relay,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )


def save_config(config: ReactorConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default


def _get_int(parser: ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        return default


def _get_bool(parser: ConfigParser, section: str, option: str, default: bool) -> bool:
    try:
        return parser.getboolean(section, option, fallback=default)
    except ValueError:
        return default

