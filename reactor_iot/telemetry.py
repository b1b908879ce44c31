"""Periodic telemetry loop for the simulated thermostat device."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import psutil

from . import constants
from .agent_context import AgentContext
from .commands import TALK_TO_ME_COMMAND, handle_talk_to_me
from .config import TelemetryConfig
from .core import HubChannel, TelemetrySample

LOGGER = logging.getLogger(__name__)


def generate_temperature(
    rng: Optional[random.Random] = None,
    *,
    upper_bound: int = constants.DEFAULT_MAX_TEMPERATURE,
) -> float:
    """Return a whole-number temperature drawn uniformly from ``[0, upper_bound)``."""

    source = rng or random
    return float(source.randrange(upper_bound))


def read_memory_kb() -> int:
    """Resident memory of the current process in kilobytes."""

    return psutil.Process().memory_info().rss // 1024


@dataclass(frozen=True, slots=True)
class TelemetryProgress:
    """Point-in-time view of the telemetry loop for health reporting."""

    component_name: str
    iterations: int
    interval_seconds: float
    last_sent_at: Optional[datetime] = None
    last_temperature: Optional[float] = None
    max_temperature: Optional[float] = None

    def is_stale(self, now: datetime, *, grace_intervals: int = 3) -> bool:
        if self.last_sent_at is None:
            return False
        allowed = timedelta(seconds=self.interval_seconds * grace_intervals)
        return now - self.last_sent_at > allowed


class TelemetryAgent:
    """Sends thermostat and memory telemetry until cancelled.

    Each iteration sends exactly one temperature sample followed by one
    memory sample, then waits ``interval_seconds``. Cancellation is checked
    once per iteration, so a send in flight always completes. Send failures
    are not retried and end the loop.
    """

    def __init__(
        self,
        hub: HubChannel,
        config: Optional[TelemetryConfig] = None,
        *,
        context: Optional[AgentContext] = None,
        rng: Optional[random.Random] = None,
        memory_reader: Optional[Callable[[], int]] = None,
    ) -> None:
        self._hub = hub
        self._config = config or TelemetryConfig()
        self._context = context or AgentContext.for_components(
            [self._config.component_name]
        )
        self._rng = rng or random.Random()
        self._memory_reader = memory_reader or read_memory_kb
        self._iterations = 0
        self._last_sent_at: Optional[datetime] = None

    @property
    def context(self) -> AgentContext:
        return self._context

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def last_sent_at(self) -> Optional[datetime]:
        return self._last_sent_at

    def progress(self) -> TelemetryProgress:
        component = self._config.component_name
        return TelemetryProgress(
            component_name=component,
            iterations=self._iterations,
            interval_seconds=self._config.interval_seconds,
            last_sent_at=self._last_sent_at,
            last_temperature=self._context.current_temperature.get(component),
            max_temperature=self._context.max_temperature.get(component),
        )

    async def start(self, cancel_event: asyncio.Event) -> None:
        LOGGER.debug("Set handler for '%s' command.", TALK_TO_ME_COMMAND)
        await self._hub.register_command_handler(TALK_TO_ME_COMMAND, handle_talk_to_me)

        while not cancel_event.is_set():
            await self.send_temperature()
            await self.send_memory()
            self._iterations += 1

            if await self._wait_for_cancel(cancel_event):
                break

        LOGGER.info("Telemetry loop stopped after %d iterations", self._iterations)

    async def send_temperature(self) -> TelemetrySample:
        component = self._config.component_name
        sample = TelemetrySample(
            component_name=component,
            metric_name=constants.TEMPERATURE_TELEMETRY,
            value=generate_temperature(
                self._rng, upper_bound=self._config.max_temperature
            ),
            timestamp=datetime.now(timezone.utc),
        )

        await self._hub.send_telemetry(sample)
        self._last_sent_at = sample.timestamp
        LOGGER.debug(
            'Telemetry: Sent - component="%s", %s in °C.',
            component,
            json.dumps(sample.as_payload()),
        )

        self._context.record_temperature(component, sample.value, sample.timestamp)
        return sample

    async def send_memory(self) -> TelemetrySample:
        sample = TelemetrySample(
            component_name=None,
            metric_name=constants.WORKING_SET_TELEMETRY,
            value=self._memory_reader(),
            timestamp=datetime.now(timezone.utc),
        )

        await self._hub.send_telemetry(sample)
        self._last_sent_at = sample.timestamp
        LOGGER.debug("Telemetry: Sent - %s in KB.", json.dumps(sample.as_payload()))
        return sample

    async def _wait_for_cancel(self, cancel_event: asyncio.Event) -> bool:
        try:
            await asyncio.wait_for(
                cancel_event.wait(), timeout=self._config.interval_seconds
            )
        except asyncio.TimeoutError:
            return False
        return True
