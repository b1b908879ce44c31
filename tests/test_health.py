from datetime import datetime, timedelta, timezone

import aiohttp
import pytest

from conftest import FakeHub, build_config
from reactor_iot.health import HealthReporter, HealthServer
from reactor_iot.telemetry import TelemetryAgent, TelemetryProgress

_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _progress(**overrides) -> TelemetryProgress:
    values = dict(
        component_name="thermostat1",
        iterations=3,
        interval_seconds=5.0,
        last_sent_at=_NOW,
        last_temperature=42.0,
        max_temperature=310.0,
    )
    values.update(overrides)
    return TelemetryProgress(**values)


@pytest.mark.asyncio
async def test_snapshot_ok_when_hub_connected_and_telemetry_running():
    reporter = HealthReporter(lambda: _progress(), clock=_Clock(_NOW))

    await reporter.set_hub(True)
    await reporter.set_telemetry(True)
    await reporter.set_agent_state("active", healthy=True)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["agentState"] == "active"
    assert snapshot["hub"]["connected"] is True
    assert snapshot["hub"]["updatedAt"] == "2024-05-01T12:00:00+00:00"
    telemetry = snapshot["telemetry"]
    assert telemetry["running"] is True
    assert telemetry["component"] == "thermostat1"
    assert telemetry["iterations"] == 3
    assert telemetry["lastSentAt"] == "2024-05-01T12:00:00+00:00"
    assert telemetry["lastTemperature"] == 42.0
    assert telemetry["maxTemperature"] == 310.0
    assert telemetry["stale"] is False


@pytest.mark.asyncio
async def test_snapshot_degraded_when_hub_disconnected():
    reporter = HealthReporter()

    await reporter.set_hub(False, "disconnected")
    await reporter.set_telemetry(True)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    assert snapshot["hub"] == {
        "connected": False,
        "detail": "disconnected",
        "updatedAt": snapshot["hub"]["updatedAt"],
    }
    assert "iterations" not in snapshot["telemetry"]


@pytest.mark.asyncio
async def test_snapshot_keeps_telemetry_failure_detail():
    reporter = HealthReporter()

    await reporter.set_hub(True)
    await reporter.set_telemetry(False, "send rejected")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    assert snapshot["telemetry"]["running"] is False
    assert snapshot["telemetry"]["detail"] == "send rejected"


@pytest.mark.asyncio
async def test_agent_state_affects_status():
    reporter = HealthReporter()

    await reporter.set_hub(True)
    await reporter.set_telemetry(True)
    await reporter.set_agent_state("awaiting_hub", healthy=False)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    assert snapshot["agentState"] == "awaiting_hub"


@pytest.mark.asyncio
async def test_telemetry_goes_stale_after_missed_intervals():
    clock = _Clock(_NOW)
    reporter = HealthReporter(lambda: _progress(), stale_intervals=3, clock=clock)
    await reporter.set_hub(True)
    await reporter.set_telemetry(True)

    clock.now = _NOW + timedelta(seconds=15)
    assert (await reporter.snapshot())["telemetry"]["stale"] is False

    clock.now = _NOW + timedelta(seconds=16)
    snapshot = await reporter.snapshot()
    assert snapshot["telemetry"]["stale"] is True
    assert snapshot["status"] == "degraded"


@pytest.mark.asyncio
async def test_stopped_telemetry_is_not_reported_stale():
    clock = _Clock(_NOW + timedelta(hours=1))
    reporter = HealthReporter(lambda: _progress(), clock=clock)
    await reporter.set_telemetry(False, "stopped")

    snapshot = await reporter.snapshot()

    assert snapshot["telemetry"]["stale"] is False


def test_progress_without_sends_is_never_stale():
    progress = _progress(last_sent_at=None, iterations=0)

    assert progress.is_stale(_NOW + timedelta(days=1)) is False


@pytest.mark.asyncio
async def test_reporter_reads_live_agent_progress():
    hub = FakeHub()
    config = build_config()
    agent = TelemetryAgent(hub, config.telemetry, memory_reader=lambda: 2048)
    reporter = HealthReporter(agent.progress)

    sample = await agent.send_temperature()
    await agent.send_memory()

    telemetry = (await reporter.snapshot())["telemetry"]
    assert telemetry["component"] == "thermostat1"
    assert telemetry["lastTemperature"] == sample.value
    assert telemetry["maxTemperature"] == sample.value
    assert telemetry["lastSentAt"] is not None


@pytest.mark.asyncio
async def test_health_server_serves_snapshot(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.set_hub(True)
    await reporter.set_telemetry(True)

    server = HealthServer(reporter, "127.0.0.1", unused_tcp_port)
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            url = f"http://127.0.0.1:{unused_tcp_port}/healthz"
            async with session.get(url) as response:
                payload = await response.json()
                assert response.status == 200
                assert payload["status"] == "ok"
                assert payload["hub"]["connected"] is True

            await reporter.set_telemetry(False, "stopped")
            async with session.get(url) as response:
                payload = await response.json()
                assert response.status == 503
                assert payload["telemetry"]["detail"] == "stopped"
    finally:
        await server.stop()
