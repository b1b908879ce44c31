"""Device health reporting: hub connectivity and telemetry loop progress."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from aiohttp import web

from .telemetry import TelemetryProgress

LOGGER = logging.getLogger(__name__)

ProgressSource = Callable[[], TelemetryProgress]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


@dataclass(slots=True)
class _Flag:
    ok: bool = False
    detail: Optional[str] = "initialising"
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class HealthReporter:
    """Combines hub state, agent state and telemetry progress into one view.

    The device counts as degraded when the hub is disconnected, the telemetry
    loop has stopped, the agent is in a non-active state, or no sample has
    been sent for ``stale_intervals`` telemetry intervals.
    """

    def __init__(
        self,
        progress_source: Optional[ProgressSource] = None,
        *,
        stale_intervals: int = 3,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._progress_source = progress_source
        self._stale_intervals = max(1, stale_intervals)
        self._clock = clock
        self._hub = _Flag()
        self._telemetry = _Flag(detail="not started")
        self._agent_state: Optional[str] = None
        self._agent_healthy = False
        self._lock = asyncio.Lock()

    async def set_hub(self, connected: bool, detail: Optional[str] = None) -> None:
        async with self._lock:
            self._hub = _Flag(ok=connected, detail=detail, updated_at=self._clock())

    async def set_telemetry(self, running: bool, detail: Optional[str] = None) -> None:
        async with self._lock:
            self._telemetry = _Flag(ok=running, detail=detail, updated_at=self._clock())

    async def set_agent_state(self, state: str, *, healthy: bool) -> None:
        async with self._lock:
            self._agent_state = state
            self._agent_healthy = healthy

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            hub = self._hub
            telemetry = self._telemetry
            agent_state = self._agent_state
            agent_healthy = self._agent_healthy

        now = self._clock()
        telemetry_payload: Dict[str, object] = {
            "running": telemetry.ok,
            "detail": telemetry.detail,
        }
        stale = False
        if self._progress_source is not None:
            progress = self._progress_source()
            stale = telemetry.ok and progress.is_stale(
                now, grace_intervals=self._stale_intervals
            )
            telemetry_payload.update(
                {
                    "component": progress.component_name,
                    "iterations": progress.iterations,
                    "lastSentAt": _iso(progress.last_sent_at),
                    "lastTemperature": progress.last_temperature,
                    "maxTemperature": progress.max_temperature,
                }
            )
        telemetry_payload["stale"] = stale

        healthy = hub.ok and telemetry.ok and not stale
        if agent_state is not None and not agent_healthy:
            healthy = False

        return {
            "status": "ok" if healthy else "degraded",
            "agentState": agent_state,
            "hub": {
                "connected": hub.ok,
                "detail": hub.detail,
                "updatedAt": _iso(hub.updated_at),
            },
            "telemetry": telemetry_payload,
        }


class HealthServer:
    """Serves the reporter snapshot on `/healthz` (503 while degraded)."""

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)

        runner = web.AppRunner(app)
        await runner.setup()
        try:
            await web.TCPSite(runner, self._host, self._port).start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        if self._runner is None:
            return
        with contextlib.suppress(RuntimeError):
            await self._runner.cleanup()
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
