"""Relay of hub temperature messages to the gauge API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from .adapters.gauge import GaugeResult, GaugeTransportError
from .core import MalformedMessage, RelayMessage

LOGGER = logging.getLogger(__name__)


class RelayOutcome(str, Enum):
    FORWARDED = "forwarded"
    REJECTED = "rejected"
    SKIPPED_ZERO = "skipped_zero"
    DROPPED_MALFORMED = "dropped_malformed"
    FAILED = "failed"


class GaugeLike(Protocol):
    async def push_temperature(self, value: int) -> GaugeResult: ...


async def relay_temperature(
    body: bytes, gauge: GaugeLike, *, log: Optional[logging.Logger] = None
) -> RelayOutcome:
    """Forward one hub message to the gauge API.

    The temperature is rounded half to even. A rounded value of zero is not
    forwarded. Malformed messages are logged and dropped. Gauge failures are
    logged and never retried.
    """

    logger = log or LOGGER

    try:
        message = RelayMessage.from_bytes(body)
    except MalformedMessage as exc:
        logger.warning("Dropping malformed hub message: %s", exc)
        return RelayOutcome.DROPPED_MALFORMED

    temperature = message.rounded()
    if temperature == 0:
        logger.debug("Skipping zero temperature reading")
        return RelayOutcome.SKIPPED_ZERO

    try:
        result = await gauge.push_temperature(temperature)
    except GaugeTransportError as exc:
        logger.error("API call failed : %s", exc)
        return RelayOutcome.FAILED

    logger.info("Temperature : %s", temperature)
    if not result.ok:
        logger.info("API call has error : %s", result.status)
        return RelayOutcome.REJECTED

    return RelayOutcome.FORWARDED
