"""Main application entry-point for the simulated thermostat device."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from enum import Enum
from typing import Optional

from .adapters import HubConnectionError, IoTHubChannel
from .config import ReactorConfig, load_config
from .core import HubChannel
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .telemetry import TelemetryAgent

LOGGER = logging.getLogger(__name__)


class AgentState(str, Enum):
    COLD_START = "cold_start"
    AWAITING_HUB = "awaiting_hub"
    ACTIVE = "active"
    DEGRADED = "degraded"
    STOPPING = "stopping"


class ThermostatAgentApp:
    """Coordinates hub connectivity, the telemetry loop and shutdown.

    The hub channel can be injected for testing; by default an
    :class:`IoTHubChannel` is created from the ``[hub]`` configuration.
    """

    def __init__(
        self,
        config: Optional[ReactorConfig] = None,
        *,
        hub: Optional[HubChannel] = None,
        agent: Optional[TelemetryAgent] = None,
    ) -> None:
        self._config = config or load_config()
        self._hub: HubChannel = hub or IoTHubChannel(self._config.hub)
        self._agent = agent or TelemetryAgent(self._hub, self._config.telemetry)
        self._health = HealthReporter(progress_source=self._agent.progress)
        self._health_server: Optional[HealthServer] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._state = AgentState.COLD_START
        self._hub_connected = False
        self._pending_updates: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def agent(self) -> TelemetryAgent:
        return self._agent

    @property
    def hub_connected(self) -> bool:
        return self._hub_connected

    def request_stop(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Connect to the hub and run the telemetry loop until cancelled."""

        self._loop = asyncio.get_running_loop()
        self._cancel_event = cancel_event or asyncio.Event()

        LOGGER.info("Press Control+C to quit the sample.")
        await self._transition_state(AgentState.COLD_START, detail="initialising")
        await self._start_health_server()

        self._hub.set_connection_status_handler(self._on_connection_status)
        await self._transition_state(AgentState.AWAITING_HUB, detail="connecting to hub")
        LOGGER.debug("Set up the device client.")
        try:
            await self._hub.connect()
        except HubConnectionError as exc:
            LOGGER.error("IoT Hub connection failed: %s", exc)
            await self._health.set_hub(False, str(exc))
            await self._transition_state(AgentState.DEGRADED, detail="hub unavailable")
            await self._stop_services()
            raise

        await self._health.set_hub(True)
        await self._health.set_telemetry(True)
        await self._transition_state(AgentState.ACTIVE, detail="telemetry running")

        try:
            await self._agent.start(self._cancel_event)
        except HubConnectionError as exc:
            LOGGER.error("Telemetry loop terminated: %s", exc)
            await self._health.set_telemetry(False, str(exc))
            await self._transition_state(AgentState.DEGRADED, detail="telemetry failed")
            raise
        else:
            await self._health.set_telemetry(False, "stopped")
        finally:
            await self._stop_services()

    @classmethod
    def start(cls, config: Optional[ReactorConfig] = None) -> int:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance._run_until_signalled())
        except KeyboardInterrupt:
            LOGGER.info("reactor-iot received shutdown signal")
        except HubConnectionError:
            return 1
        return 0

    async def _run_until_signalled(self) -> None:
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler is unavailable on Windows event loops.
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signum, cancel_event.set)
        await self.run(cancel_event)

    async def _transition_state(
        self, state: AgentState, *, detail: Optional[str] = None
    ) -> None:
        previous = self._state
        self._state = state
        if previous != state:
            LOGGER.info(
                "Agent state transition %s -> %s (%s)",
                previous.value,
                state.value,
                detail or state.value,
            )
        await self._health.set_agent_state(
            state.value, healthy=state == AgentState.ACTIVE
        )

    def _on_connection_status(self, connected: bool) -> None:
        self._hub_connected = connected
        loop = self._loop
        if loop is None:
            return

        def _schedule() -> None:
            task = asyncio.create_task(
                self._health.set_hub(connected, None if connected else "disconnected")
            )
            self._pending_updates.add(task)
            task.add_done_callback(self._on_update_done)

        # SDK callbacks may arrive on a handler thread.
        loop.call_soon_threadsafe(_schedule)

    def _on_update_done(self, task: asyncio.Task[None]) -> None:
        self._pending_updates.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Health update failed: %s", exc, exc_info=exc)

    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self._health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
        else:
            self._health_server = server

    async def _stop_services(self) -> None:
        await self._transition_state(AgentState.STOPPING, detail="shutdown requested")

        with contextlib.suppress(HubConnectionError):
            await self._hub.disconnect()
        await self._health.set_hub(False, "shutdown")

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None
