"""Tests for the thermostat agent lifecycle."""

import asyncio

import pytest

from conftest import FakeHub, build_config
from reactor_iot.adapters import HubConnectionError
from reactor_iot.app import AgentState, ThermostatAgentApp


class _FailingConnectHub(FakeHub):
    async def connect(self) -> None:
        raise HubConnectionError("unauthorised")


@pytest.mark.asyncio
async def test_run_sends_telemetry_until_cancelled() -> None:
    cancel_event = asyncio.Event()

    def _on_send(sample) -> None:
        if len(hub.sent) >= 4:
            cancel_event.set()

    hub = FakeHub(on_send=_on_send)
    app = ThermostatAgentApp(build_config(), hub=hub)

    await asyncio.wait_for(app.run(cancel_event), timeout=2.0)

    assert hub.connect_calls == 1
    assert hub.disconnect_calls == 1
    assert len(hub.sent) == 4
    assert "talktome" in hub.handlers
    assert app.state is AgentState.STOPPING
    assert hub.status_handler is not None


@pytest.mark.asyncio
async def test_request_stop_ends_run() -> None:
    hub = FakeHub()
    app = ThermostatAgentApp(build_config(interval_seconds=30.0), hub=hub)

    task = asyncio.create_task(app.run())
    while len(hub.sent) < 2:
        await asyncio.sleep(0)
    app.request_stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert hub.disconnect_calls == 1


@pytest.mark.asyncio
async def test_connect_failure_marks_hub_unhealthy_and_raises() -> None:
    hub = _FailingConnectHub()
    app = ThermostatAgentApp(build_config(), hub=hub)

    with pytest.raises(HubConnectionError):
        await app.run(asyncio.Event())

    snapshot = await app.health.snapshot()
    assert snapshot["status"] == "degraded"
    assert hub.sent == []


@pytest.mark.asyncio
async def test_send_failure_stops_services_and_raises() -> None:
    hub = FakeHub(fail_on_send=1)
    app = ThermostatAgentApp(build_config(), hub=hub)

    with pytest.raises(HubConnectionError):
        await asyncio.wait_for(app.run(asyncio.Event()), timeout=2.0)

    snapshot = await app.health.snapshot()
    assert snapshot["status"] == "degraded"
    assert snapshot["telemetry"]["running"] is False
    assert snapshot["telemetry"]["detail"] == "send rejected"
    assert snapshot["hub"]["detail"] == "shutdown"
    assert hub.disconnect_calls == 1


@pytest.mark.asyncio
async def test_health_reports_loop_progress() -> None:
    cancel_event = asyncio.Event()
    hub = FakeHub()
    app = ThermostatAgentApp(build_config(interval_seconds=30.0), hub=hub)

    task = asyncio.create_task(app.run(cancel_event))
    while len(hub.sent) < 2:
        await asyncio.sleep(0)
    for _ in range(5):
        await asyncio.sleep(0)

    snapshot = await app.health.snapshot()
    assert snapshot["status"] == "ok"
    assert snapshot["agentState"] == "active"
    assert snapshot["hub"]["connected"] is True
    telemetry = snapshot["telemetry"]
    assert telemetry["running"] is True
    assert telemetry["iterations"] == 1
    assert telemetry["lastTemperature"] == hub.sent[0].value
    assert telemetry["lastSentAt"] is not None

    cancel_event.set()
    await asyncio.wait_for(task, timeout=1.0)

    snapshot = await app.health.snapshot()
    assert snapshot["telemetry"]["detail"] == "stopped"
    assert snapshot["agentState"] == "stopping"


@pytest.mark.asyncio
async def test_connection_status_updates_health() -> None:
    cancel_event = asyncio.Event()
    hub = FakeHub()
    app = ThermostatAgentApp(build_config(interval_seconds=30.0), hub=hub)

    task = asyncio.create_task(app.run(cancel_event))
    while len(hub.sent) < 2:
        await asyncio.sleep(0)

    hub.status_handler(False)
    for _ in range(5):
        await asyncio.sleep(0)

    snapshot = await app.health.snapshot()
    assert app.hub_connected is False
    assert snapshot["hub"]["connected"] is False
    assert snapshot["hub"]["detail"] == "disconnected"
    assert snapshot["status"] == "degraded"
    assert app._pending_updates == set()

    cancel_event.set()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_connection_status_from_another_thread_updates_health() -> None:
    cancel_event = asyncio.Event()
    hub = FakeHub()
    app = ThermostatAgentApp(build_config(interval_seconds=30.0), hub=hub)

    task = asyncio.create_task(app.run(cancel_event))
    while len(hub.sent) < 2:
        await asyncio.sleep(0)

    await asyncio.to_thread(hub.status_handler, False)
    for _ in range(20):
        if not (await app.health.snapshot())["hub"]["connected"]:
            break
        await asyncio.sleep(0.01)
    for _ in range(2):
        await asyncio.sleep(0)

    snapshot = await app.health.snapshot()
    assert snapshot["hub"]["detail"] == "disconnected"
    assert app._pending_updates == set()

    cancel_event.set()
    await asyncio.wait_for(task, timeout=1.0)
