"""Govee LAN controller.

Govee lights answer a multicast ``scan`` request on 239.255.255.250:4001 by
sending JSON to port 4002 on the requester, and accept commands as JSON on
port 4003. A single background listener owns port 4002 for the life of the
process; it is started lazily on first use and rescans periodically. The
device table it fills is only trusted once a settle delay has passed since
the listener started.
"""

from __future__ import annotations

import asyncio
import json
import logging
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from lightsync_hub.colors import hsb_to_rgb8, rgb8_to_hsb
from lightsync_hub.errors import NotFoundError, UnreachableError
from lightsync_hub.models import Brand, Color, Device, DeviceID, DeviceState

logger = logging.getLogger(__name__)

MULTICAST_ADDR = "239.255.255.250"
SCAN_PORT = 4001
LISTEN_PORT = 4002
COMMAND_PORT = 4003

GOVEE_MIN_KELVIN = 2000
GOVEE_MAX_KELVIN = 9000

SCAN_REQUEST = {"msg": {"cmd": "scan", "data": {"account_topic": "reserve"}}}


@dataclass(frozen=True)
class GoveeDevice:
    """One entry from a scan response."""

    device: str
    ip: str
    sku: str
    wifi_version: str | None = None


def parse_message(raw: bytes) -> tuple[str, dict[str, Any]] | None:
    """Return ``(cmd, data)`` from a Govee datagram, or None if it is not one."""
    try:
        msg = json.loads(raw.decode("utf-8"))["msg"]
        return str(msg["cmd"]), dict(msg.get("data") or {})
    except (ValueError, KeyError, TypeError, AttributeError):
        return None


def status_to_state(data: dict[str, Any]) -> DeviceState:
    kelvin = int(data.get("colorTemInKelvin") or 0)
    brightness = min(max(int(data.get("brightness", 0)) / 100.0, 0.0), 1.0)
    color = None
    if not kelvin and isinstance(data.get("color"), dict):
        rgb = data["color"]
        h, s, _v = rgb8_to_hsb(int(rgb.get("r", 0)), int(rgb.get("g", 0)), int(rgb.get("b", 0)))
        if s > 0:
            color = Color(h=h, s=s, b=brightness)
    return DeviceState(
        on=bool(data.get("onOff")),
        brightness=brightness,
        color=color,
        kelvin=kelvin or None,
    )


# ---------------------------------------------------------------------------
# Background listener
# ---------------------------------------------------------------------------

class GoveeListener:
    """Owns the response socket, the scan loop and the discovered device table.

    Parameters
    ----------
    scan_interval:
        Seconds between multicast scan broadcasts.
    """

    def __init__(self, scan_interval: float = 30.0) -> None:
        self._scan_interval = scan_interval
        self._sock: socket.socket | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._devices: dict[str, GoveeDevice] = {}
        self._status_waiters: dict[str, list[asyncio.Future[dict[str, Any]]]] = {}
        self._start_lock = asyncio.Lock()
        self.started_at: float | None = None

    @property
    def started(self) -> bool:
        return self.started_at is not None

    async def ensure_started(self) -> None:
        async with self._start_lock:
            if self.started:
                return
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.setblocking(False)
            sock.bind(("", LISTEN_PORT))
            self._sock = sock
            self.started_at = asyncio.get_running_loop().time()
            self._tasks = [
                asyncio.create_task(self._receive_loop(), name="govee-receive"),
                asyncio.create_task(self._scan_loop(), name="govee-scan"),
            ]
            logger.info("Govee listener started on port %d", LISTEN_PORT)

    def devices(self) -> list[GoveeDevice]:
        return list(self._devices.values())

    async def _send(self, payload: dict[str, Any], addr: tuple[str, int]) -> None:
        if self._sock is None:
            raise UnreachableError("govee listener is not running")
        data = json.dumps(payload).encode("utf-8")
        await asyncio.get_running_loop().sock_sendto(self._sock, data, addr)

    async def scan(self) -> None:
        await self._send(SCAN_REQUEST, (MULTICAST_ADDR, SCAN_PORT))

    async def send_command(self, ip: str, cmd: str, data: dict[str, Any]) -> None:
        await self._send({"msg": {"cmd": cmd, "data": data}}, (ip, COMMAND_PORT))

    async def request_status(self, ip: str, timeout: float) -> dict[str, Any]:
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._status_waiters.setdefault(ip, []).append(future)
        try:
            await self.send_command(ip, "devStatus", {})
            async with asyncio.timeout(timeout):
                return await future
        finally:
            waiters = self._status_waiters.get(ip, [])
            if future in waiters:
                waiters.remove(future)

    def handle_datagram(self, raw: bytes, ip: str) -> None:
        parsed = parse_message(raw)
        if parsed is None:
            logger.debug("Ignoring non-Govee datagram from %s", ip)
            return
        cmd, data = parsed
        if cmd == "scan":
            device = str(data.get("device") or "")
            if not device:
                return
            entry = GoveeDevice(
                device=device,
                ip=str(data.get("ip") or ip),
                sku=str(data.get("sku") or ""),
                wifi_version=data.get("wifiVersionSoft"),
            )
            if device not in self._devices:
                logger.info("Govee found %s (%s) at %s", entry.sku, device, entry.ip)
            self._devices[device] = entry
        elif cmd == "devStatus":
            for future in self._status_waiters.pop(ip, []):
                if not future.done():
                    future.set_result(data)

    async def _receive_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if self._sock is None:
            raise UnreachableError("govee listener is not running")
        while True:
            try:
                raw, addr = await loop.sock_recvfrom(self._sock, 4096)
            except OSError:
                logger.warning("Govee receive failed", exc_info=True)
                await asyncio.sleep(1.0)
                continue
            self.handle_datagram(raw, addr[0])

    async def _scan_loop(self) -> None:
        while True:
            try:
                await self.scan()
            except OSError:
                logger.warning("Govee scan broadcast failed", exc_info=True)
            await asyncio.sleep(self._scan_interval)

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self.started_at = None


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class GoveeController:
    """Brand controller for Govee LAN lights.

    Parameters
    ----------
    listener:
        Shared background listener; created on demand when omitted.
    settle_seconds:
        How long after listener start the device table is trusted.
    request_timeout:
        Deadline in seconds for ``devStatus`` replies.
    """

    def __init__(
        self,
        listener: GoveeListener | None = None,
        settle_seconds: float = 3.0,
        request_timeout: float = 2.0,
    ) -> None:
        self._listener = listener or GoveeListener()
        self._settle_seconds = settle_seconds
        self._request_timeout = request_timeout

    @property
    def brand(self) -> Brand:
        return Brand.GOVEE

    async def discover(self, timeout: float) -> list[Device]:
        await self._listener.ensure_started()
        await self._listener.scan()
        loop = asyncio.get_running_loop()
        started_at = self._listener.started_at or loop.time()
        remaining = self._settle_seconds - (loop.time() - started_at)
        if remaining > 0:
            await asyncio.sleep(min(remaining, timeout / 2))

        now = datetime.now(timezone.utc)
        return [
            Device(
                id=DeviceID.build(Brand.GOVEE, entry.device),
                brand=Brand.GOVEE,
                name=f"Govee {entry.sku} ({entry.ip})",
                model=entry.sku or None,
                last_ip=entry.ip,
                last_seen=now,
                supports_color=True,
                supports_kelvin=True,
                min_kelvin=GOVEE_MIN_KELVIN,
                max_kelvin=GOVEE_MAX_KELVIN,
                kelvin_step=1,
                firmware_version=entry.wifi_version,
            )
            for entry in self._listener.devices()
        ]

    def _ip_for(self, device_id: str) -> str:
        local_id = DeviceID.parse(device_id).local_id
        for entry in self._listener.devices():
            if entry.device == local_id:
                return entry.ip
        raise NotFoundError(f"device {device_id} not connected, run discovery first")

    async def _send(self, device_id: str, cmd: str, data: dict[str, Any]) -> None:
        ip = self._ip_for(device_id)
        try:
            await self._listener.send_command(ip, cmd, data)
        except OSError as exc:
            raise UnreachableError(f"{device_id}: {exc}") from exc

    async def set_state(self, device_id: str, state: DeviceState) -> None:
        if not state.on:
            await self._send(device_id, "turn", {"value": 0})
            return
        await self._send(device_id, "turn", {"value": 1})
        await self._send(device_id, "brightness", {"value": round(state.brightness * 100)})
        if state.color is not None:
            r, g, b = hsb_to_rgb8(state.color.h, state.color.s, state.color.b)
            await self._send(
                device_id, "colorwc",
                {"color": {"r": r, "g": g, "b": b}, "colorTemInKelvin": 0},
            )
        elif state.kelvin is not None:
            kelvin = min(max(state.kelvin, GOVEE_MIN_KELVIN), GOVEE_MAX_KELVIN)
            await self._send(
                device_id, "colorwc",
                {"color": {"r": 0, "g": 0, "b": 0}, "colorTemInKelvin": kelvin},
            )

    async def get_state(self, device_id: str) -> DeviceState:
        ip = self._ip_for(device_id)
        try:
            data = await self._listener.request_status(ip, self._request_timeout)
        except (TimeoutError, OSError) as exc:
            raise UnreachableError(f"{device_id}: no status reply") from exc
        return status_to_state(data)

    async def turn_on(self, device_id: str) -> None:
        await self._send(device_id, "turn", {"value": 1})

    async def turn_off(self, device_id: str) -> None:
        await self._send(device_id, "turn", {"value": 0})

    async def close(self) -> None:
        await self._listener.close()
