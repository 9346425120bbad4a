"""Tests for the dashboard WebSocket host."""

import asyncio
import json
import threading
from datetime import timedelta

import pytest
import websockets

from conftest import FakeClient
from lmu_weather.model import PollerState, SessionKind, TelemetryFrame
from lmu_weather.plugin import WeatherPlugin
from lmu_weather.server import DashboardServer, process_watch_loop


class FakeWebSocket:
    def __init__(self, messages=()):
        self.sent = []
        self._messages = list(messages)

    async def send(self, message: str):
        self.sent.append(json.loads(message))

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)


@pytest.fixture
def server(fake_client: FakeClient) -> DashboardServer:
    return DashboardServer(WeatherPlugin(client=fake_client), process_check=lambda: False)


def test_frame_from_message() -> None:
    frame = TelemetryFrame.from_message({
        "gameRunning": True,
        "gamePaused": False,
        "gameInMenu": False,
        "gameName": "LMU",
        "sessionTypeName": "Qualify",
        "sessionTimeLeft": 600,
    })

    assert frame.game_running is True
    assert frame.game_name == "LMU"
    assert frame.session_time_left == timedelta(minutes=10)
    assert TelemetryFrame.from_message({}).game_running is None

    with pytest.raises(ValueError):
        TelemetryFrame.from_message({"sessionTimeLeft": float("inf")})
    with pytest.raises(ValueError):
        TelemetryFrame.from_message({"sessionTimeLeft": float("nan")})


def test_handle_message(server: DashboardServer) -> None:
    frame = server.handle_message(json.dumps({
        "type": "telemetry",
        "gameRunning": False,
        "gameName": "LMU",
        "sessionTypeName": "QUALIFYING",
        "sessionTimeLeft": 300,
    }))

    assert frame is not None
    assert server.plugin.tracker.state.kind is SessionKind.QUALIFY
    assert server.plugin.polling_state is PollerState.STOPPED


@pytest.mark.parametrize(
    "raw",
    [
        "{broken",
        json.dumps([1, 2]),
        json.dumps({"type": "hello"}),
        json.dumps({"sessionTimeLeft": "soon"}),
        '{"gameRunning": false, "sessionTimeLeft": Infinity}',
        '{"gameRunning": false, "sessionTimeLeft": 1e400}',
        json.dumps({"gameRunning": False, "sessionTimeLeft": 1e300}),
    ],
)
def test_handle_message_ignores_bad_input(server: DashboardServer, raw) -> None:
    assert server.handle_message(raw) is None


def test_missing_running_flag_uses_cached_process_state(fake_client: FakeClient) -> None:
    """Telemetry reads the cached flag; only the refresh runs the check, off the loop thread."""
    check_threads = []

    def check():
        check_threads.append(threading.get_ident())
        return True

    server = DashboardServer(WeatherPlugin(client=fake_client), process_check=check)

    async def scenario():
        before = server.handle_message(json.dumps({"gameName": "LMU"}))
        await server.refresh_process_state()
        after = server.handle_message(json.dumps({"gameName": "LMU"}))
        server.handle_message(json.dumps({"gameName": "LMU"}))
        state = server.plugin.polling_state
        await server.plugin.end()
        return before, after, state

    before, after, state = asyncio.run(scenario())

    assert before.game_running is False
    assert after.game_running is True
    assert state is PollerState.RUNNING
    assert len(check_threads) == 1
    assert check_threads[0] != threading.get_ident()


def test_process_watch_loop_refreshes(server: DashboardServer) -> None:
    results = iter([True, False])
    server._process_check = lambda: next(results, False)

    async def scenario():
        task = asyncio.get_running_loop().create_task(process_watch_loop(server, interval=0.01))
        for _ in range(200):
            if server.process_running:
                break
            await asyncio.sleep(0.005)
        seen = server.process_running
        await asyncio.sleep(0.05)
        task.cancel()
        return seen

    assert asyncio.run(scenario()) is True
    assert server.process_running is False


def test_process_watch_loop_survives_failing_check(server: DashboardServer) -> None:
    outcomes = iter([OSError("scan failed"), True])

    def check():
        outcome = next(outcomes, True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    server._process_check = check

    async def scenario():
        task = asyncio.get_running_loop().create_task(process_watch_loop(server, interval=0.01))
        for _ in range(200):
            if server.process_running:
                break
            await asyncio.sleep(0.005)
        task.cancel()
        return server.process_running

    assert asyncio.run(scenario()) is True


def test_snapshot(server: DashboardServer) -> None:
    snapshot = server.snapshot()

    assert snapshot["type"] == "properties"
    assert len(snapshot["data"]) == 103
    assert snapshot["data"]["CurrentNodeName"] == "START"
    json.dumps(snapshot)


def test_handler_registers_and_applies_messages(server: DashboardServer) -> None:
    websocket = FakeWebSocket([json.dumps({"gameRunning": False, "sessionTypeName": "PRACTICE"})])

    asyncio.run(server.handler(websocket))

    assert websocket.sent[0]["type"] == "properties"
    assert server.plugin.tracker.state.kind is SessionKind.PRACTICE
    assert websocket not in server.clients


def test_broadcast(server: DashboardServer) -> None:
    clients = [FakeWebSocket(), FakeWebSocket()]
    server.clients.update(clients)

    asyncio.run(server.broadcast({"type": "properties", "data": {}}))

    assert all(client.sent == [{"type": "properties", "data": {}}] for client in clients)


def test_broadcast_drops_closed_clients(server: DashboardServer) -> None:
    class ClosedWebSocket(FakeWebSocket):
        async def send(self, message: str):
            raise websockets.exceptions.ConnectionClosed(None, None)

    alive, closed = FakeWebSocket(), ClosedWebSocket()
    server.clients.update([alive, closed])

    asyncio.run(server.broadcast({"type": "properties", "data": {}}))

    assert server.clients == {alive}
    assert alive.sent == [{"type": "properties", "data": {}}]
