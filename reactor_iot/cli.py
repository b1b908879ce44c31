"""Command-line interface for reactor-iot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .adapters import GaugeClient
from .app import ThermostatAgentApp
from .config import ConfigurationError, ReactorConfig, load_config
from .logging import configure_logging
from .relay import RelayOutcome, relay_temperature

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reactor-iot",
        description="Simulated plug and play thermostat for Azure IoT Hub",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Run the simulated thermostat device")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    relay_parser = subparsers.add_parser(
        "relay", help="Relay a single hub message payload to the gauge API"
    )
    relay_parser.add_argument(
        "--payload",
        required=True,
        help='JSON message body, e.g. \'{"temperature": 23.4}\'',
    )

    return parser


async def _relay_once(config: ReactorConfig, payload: str) -> RelayOutcome:
    gauge = GaugeClient(
        config.relay.gauge_base_url, timeout_seconds=config.relay.timeout_seconds
    )
    try:
        return await relay_temperature(payload.encode("utf-8"), gauge)
    finally:
        await gauge.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        try:
            config.require_connection_string()
        except ConfigurationError as exc:
            LOGGER.error("%s", exc)
            return 1
        return ThermostatAgentApp.start(config)

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                if key == "connection_string" and value:
                    value = "<redacted>"
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "relay":
        configure_logging(config.logging.level)
        outcome = asyncio.run(_relay_once(config, args.payload))
        print(outcome.value)
        return 0 if outcome in (RelayOutcome.FORWARDED, RelayOutcome.SKIPPED_ZERO) else 1

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
