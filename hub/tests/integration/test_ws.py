"""Integration tests for the WebSocket event stream."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lightsync_hub.api import ws as ws_module
from lightsync_hub.events.types import EventType


@pytest.fixture
def live_client(app, event_bus):
    """TestClient sharing one event loop across HTTP and WebSocket calls."""
    subscription = event_bus.subscribe(["*"], ws_module.relay_bus_event)
    with TestClient(app) as tc:
        yield tc
    event_bus.unsubscribe(subscription)


class TestWebSocketEvents:
    def test_hello_on_connect(self, live_client) -> None:
        with live_client.websocket_connect("/ws/events") as ws:
            assert ws.receive_json() == {"type": "hello"}

    def test_bus_events_are_relayed(self, live_client) -> None:
        with live_client.websocket_connect("/ws/events") as ws:
            ws.receive_json()
            response = live_client.put("/monitor/enabled", json={"enabled": False})
            assert response.status_code == 200

            frame = ws.receive_json()
            assert frame["type"] == "event"
            assert frame["event_type"] == EventType.MONITORING_CHANGED
            assert frame["payload"] == {"enabled": False}
            assert frame["seq"] >= 1

    def test_pong_and_garbage_frames_are_tolerated(self, live_client) -> None:
        with live_client.websocket_connect("/ws/events") as ws:
            ws.receive_json()
            ws.send_json({"type": "pong"})
            ws.send_json(["not", "an", "object"])
            live_client.put("/monitor/enabled", json={"enabled": True})
            assert ws.receive_json()["payload"] == {"enabled": True}

    def test_client_is_forgotten_after_disconnect(self, live_client) -> None:
        with live_client.websocket_connect("/ws/events") as ws:
            ws.receive_json()
            assert ws_module.connected_count() == 1
        assert ws_module.connected_count() == 0


class TestBroadcast:
    async def test_no_clients_is_noop(self) -> None:
        await ws_module.broadcast_event(1, EventType.SENSOR_CHANGED, {"value": True})
        assert ws_module.connected_count() == 0

    async def test_failed_send_drops_client(self) -> None:
        class DeadSocket:
            async def send_json(self, data) -> None:
                raise RuntimeError("closed")

        client = ws_module.WebSocketClient(DeadSocket())
        ws_module._connected_clients.add(client)
        try:
            await ws_module.broadcast_event(2, EventType.SCENE_ACTIVATED, {"scene_id": "x"})
            assert client not in ws_module._connected_clients
        finally:
            ws_module._connected_clients.discard(client)
