"""WebSocket endpoint: live hub events with keepalive.

Delivery is at-most-once; clients that connect late see only events
published after they joined.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fastapi import APIRouter
from starlette.websockets import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

PING_INTERVAL_SECONDS = 30
MAX_MISSED_PONGS = 3


class WebSocketClient:
    """A connected event subscriber."""

    def __init__(self, ws: WebSocket) -> None:
        self.ws = ws
        self.last_pong: float = time.time()
        self.missed_pongs: int = 0

    async def send_event(self, seq: int, event_type: str, payload: dict[str, Any]) -> bool:
        """Send an event to the client. Returns False if send fails."""
        try:
            await self.ws.send_json({
                "type": "event",
                "seq": seq,
                "event_type": event_type,
                "payload": payload,
            })
            return True
        except Exception:
            return False


_connected_clients: set[WebSocketClient] = set()


def connected_count() -> int:
    return len(_connected_clients)


async def broadcast_event(seq: int, event_type: str, payload: dict[str, Any]) -> None:
    """Broadcast an event to all connected WebSocket clients."""
    disconnected = []
    for client in list(_connected_clients):
        if not await client.send_event(seq, event_type, payload):
            disconnected.append(client)
    for client in disconnected:
        _connected_clients.discard(client)


async def relay_bus_event(event: dict[str, Any]) -> None:
    """Event-bus subscriber that forwards every event to the websocket clients."""
    await broadcast_event(event["seq"], event["event_type"], event["payload"])


async def _keepalive_loop(client: WebSocketClient) -> None:
    """Send pings every PING_INTERVAL_SECONDS. Close after MAX_MISSED_PONGS."""
    while True:
        await asyncio.sleep(PING_INTERVAL_SECONDS)
        try:
            await client.ws.send_json({"type": "ping"})
            client.missed_pongs += 1
            if client.missed_pongs >= MAX_MISSED_PONGS:
                await client.ws.close()
                return
        except Exception:
            return


@router.websocket("/ws/events")
async def ws_events(ws: WebSocket):
    """Stream hub events.

    Protocol:
    1. Client connects and receives ``{"type": "hello"}``
    2. Live events stream as ``{"type": "event", ...}`` frames
    3. Keepalive: server pings every 30s, client pongs, 3 missed = close
    """
    await ws.accept()
    await ws.send_json({"type": "hello"})

    client = WebSocketClient(ws)
    _connected_clients.add(client)
    keepalive_task = asyncio.create_task(_keepalive_loop(client))
    logger.debug("WebSocket client connected (%d total)", len(_connected_clients))

    try:
        while True:
            try:
                raw = await ws.receive_json()
            except WebSocketDisconnect:
                break
            if isinstance(raw, dict) and raw.get("type") == "pong":
                client.missed_pongs = 0
                client.last_pong = time.time()
    finally:
        keepalive_task.cancel()
        _connected_clients.discard(client)
        logger.debug("WebSocket client disconnected")
