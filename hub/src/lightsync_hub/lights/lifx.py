"""LIFX LAN controller.

Discovery broadcasts GetService and listens for StateService replies for a
fixed window; bulbs are deduplicated by their hardware target. Label, product
and firmware are then queried per bulb. Commands are sent with
``ack_required`` so a dead session surfaces as a timeout, which triggers one
rediscovery and one retry.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

from lightsync_hub.errors import NotFoundError, ProtocolError, UnreachableError
from lightsync_hub.lights import lifx_packet as packet
from lightsync_hub.lights.lifx_packet import HSBK, MessageType, Packet
from lightsync_hub.lights.lifx_products import lookup
from lightsync_hub.models import Brand, Color, Device, DeviceID, DeviceState

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_KELVIN = 3500
TRANSITION_MS = 200
_U16 = 0xFFFF


# ---------------------------------------------------------------------------
# State conversion
# ---------------------------------------------------------------------------

def state_to_hsbk(state: DeviceState) -> HSBK:
    kelvin = state.kelvin if state.kelvin is not None else DEFAULT_KELVIN
    brightness = round(state.brightness * _U16)
    if state.color is not None:
        return HSBK(
            hue=round(state.color.h / 360.0 * _U16) & _U16,
            saturation=round(state.color.s * _U16),
            brightness=brightness,
            kelvin=kelvin,
        )
    return HSBK(hue=0, saturation=0, brightness=brightness, kelvin=kelvin)


def hsbk_to_state(power: int, color: HSBK) -> DeviceState:
    brightness = color.brightness / _U16
    hsb = None
    if color.saturation > 0:
        hsb = Color(h=color.hue / _U16 * 360.0, s=color.saturation / _U16, b=brightness)
    return DeviceState(on=power > 0, brightness=brightness, color=hsb, kelvin=color.kelvin)


# ---------------------------------------------------------------------------
# UDP transport
# ---------------------------------------------------------------------------

class LifxTransport:
    """Request/response exchanges over short-lived non-blocking UDP sockets.

    Parameters
    ----------
    broadcast_address:
        Where GetService is sent during discovery.
    port:
        LIFX UDP port on the bulbs.
    """

    def __init__(
        self,
        broadcast_address: str = "255.255.255.255",
        port: int = packet.LIFX_PORT,
    ) -> None:
        self._broadcast_address = broadcast_address
        self._port = port
        self._source = int.from_bytes(os.urandom(4), "little") or 1
        self._sequence = 0

    def _next_sequence(self) -> int:
        self._sequence = (self._sequence + 1) & 0xFF
        return self._sequence

    def _open(self, broadcast: bool = False) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        if broadcast:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.setblocking(False)
        sock.bind(("", 0))
        return sock

    async def broadcast(self, msg_type: int, window: float) -> list[tuple[Packet, str]]:
        """Broadcast *msg_type* and collect every reply for *window* seconds."""
        loop = asyncio.get_running_loop()
        data = packet.encode(
            msg_type, source=self._source, sequence=self._next_sequence(), res_required=True
        )
        replies: list[tuple[Packet, str]] = []
        sock = self._open(broadcast=True)
        try:
            await loop.sock_sendto(sock, data, (self._broadcast_address, self._port))
            end = loop.time() + window
            while (remaining := end - loop.time()) > 0:
                try:
                    raw, addr = await asyncio.wait_for(loop.sock_recvfrom(sock, 1024), remaining)
                except TimeoutError:
                    break
                try:
                    reply = packet.decode(raw)
                except ValueError:
                    logger.debug("Ignoring malformed datagram from %s", addr[0])
                    continue
                if reply.header.source == self._source:
                    replies.append((reply, addr[0]))
        finally:
            sock.close()
        return replies

    async def request(
        self,
        ip: str,
        target: int,
        msg_type: int,
        payload: bytes = b"",
        *,
        expect: int,
        timeout: float,
    ) -> Packet:
        """Send one message to a bulb and wait for a reply of type *expect*.

        Raises ``TimeoutError`` when nothing matching arrives in time.
        """
        loop = asyncio.get_running_loop()
        sequence = self._next_sequence()
        data = packet.encode(
            msg_type,
            payload,
            source=self._source,
            sequence=sequence,
            target=target,
            res_required=expect != MessageType.ACKNOWLEDGEMENT,
            ack_required=expect == MessageType.ACKNOWLEDGEMENT,
        )
        sock = self._open()
        try:
            await loop.sock_sendto(sock, data, (ip, self._port))
            async with asyncio.timeout(timeout):
                while True:
                    raw, _ = await loop.sock_recvfrom(sock, 1024)
                    try:
                        reply = packet.decode(raw)
                    except ValueError:
                        continue
                    if reply.header.sequence == sequence and reply.header.msg_type == expect:
                        return reply
        finally:
            sock.close()


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Session:
    ip: str
    target: int


class LifxController:
    """Brand controller for LIFX bulbs on the local network.

    Parameters
    ----------
    transport:
        UDP exchange implementation; tests pass a fake.
    discovery_window:
        Upper bound in seconds on the GetService listen window.
    request_timeout:
        Per-request deadline in seconds.
    reconnect_attempts:
        How many rediscover-and-retry rounds a failed command gets.
    """

    def __init__(
        self,
        transport: LifxTransport | None = None,
        discovery_window: float = 5.0,
        request_timeout: float = 2.0,
        reconnect_attempts: int = 1,
    ) -> None:
        self._transport = transport or LifxTransport()
        self._discovery_window = discovery_window
        self._request_timeout = request_timeout
        self._reconnect_attempts = reconnect_attempts
        self._sessions: dict[str, _Session] = {}

    @property
    def brand(self) -> Brand:
        return Brand.LIFX

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, timeout: float) -> list[Device]:
        # Half the deadline is left for the describe round-trips.
        window = min(self._discovery_window, timeout / 2)
        replies = await self._transport.broadcast(MessageType.GET_SERVICE, window)

        bulbs: dict[int, str] = {}
        for reply, ip in replies:
            if reply.header.msg_type != MessageType.STATE_SERVICE:
                continue
            service, _port = packet.parse_state_service(reply.payload)
            if service == packet.SERVICE_UDP and reply.header.target not in bulbs:
                bulbs[reply.header.target] = ip

        results = await asyncio.gather(
            *(self._describe(target, ip) for target, ip in bulbs.items())
        )
        devices = [d for d in results if d is not None]
        logger.debug("LIFX broadcast answered by %d bulb(s), %d described", len(bulbs), len(devices))
        return devices

    async def _describe(self, target: int, ip: str) -> Device | None:
        target_hex = target.to_bytes(8, "little")[:6].hex()
        device_id = DeviceID.build(Brand.LIFX, target_hex)
        try:
            reply = await self._transport.request(
                ip, target, MessageType.GET_LABEL,
                expect=MessageType.STATE_LABEL, timeout=self._request_timeout,
            )
        except (TimeoutError, OSError):
            logger.debug("LIFX %s did not answer GetLabel", ip)
            return None
        label = packet.parse_state_label(reply.payload)

        product = None
        try:
            reply = await self._transport.request(
                ip, target, MessageType.GET_VERSION,
                expect=MessageType.STATE_VERSION, timeout=self._request_timeout,
            )
            product = lookup(*packet.parse_state_version(reply.payload))
        except (TimeoutError, OSError):
            logger.debug("LIFX %s did not answer GetVersion", ip)

        firmware = None
        try:
            reply = await self._transport.request(
                ip, target, MessageType.GET_HOST_FIRMWARE,
                expect=MessageType.STATE_HOST_FIRMWARE, timeout=self._request_timeout,
            )
            major, minor = packet.parse_state_host_firmware(reply.payload)
            firmware = f"{major}.{minor}"
        except (TimeoutError, OSError):
            logger.debug("LIFX %s did not answer GetHostFirmware", ip)

        self._sessions[device_id] = _Session(ip=ip, target=target)
        return Device(
            id=device_id,
            brand=Brand.LIFX,
            name=label or f"LIFX {target_hex}",
            model=product.name if product else None,
            last_ip=ip,
            last_seen=datetime.now(timezone.utc),
            supports_color=product.color if product else True,
            supports_kelvin=True,
            min_kelvin=product.min_kelvin if product else 0,
            max_kelvin=product.max_kelvin if product else 0,
            kelvin_step=1,
            firmware_version=firmware,
        )

    # ------------------------------------------------------------------
    # Sessions and retry
    # ------------------------------------------------------------------

    async def _rediscover(self, device_id: str) -> _Session:
        logger.info("LIFX rediscovering %s", device_id)
        await self.discover(self._discovery_window)
        session = self._sessions.get(device_id)
        if session is None:
            raise NotFoundError(f"device {device_id} not found after rediscovery")
        return session

    async def _with_session(
        self, device_id: str, action: Callable[[_Session], Awaitable[T]]
    ) -> T:
        session = self._sessions.get(device_id)
        if session is None:
            session = await self._rediscover(device_id)
        attempts = 0
        while True:
            try:
                return await action(session)
            except (TimeoutError, OSError) as exc:
                if attempts >= self._reconnect_attempts:
                    raise UnreachableError(f"{device_id}: {str(exc) or 'no reply'}") from exc
                attempts += 1
                logger.warning("LIFX command to %s failed, rediscovering: %s", device_id, exc)
                session = await self._rediscover(device_id)

    async def _set_power(self, session: _Session, level: int) -> None:
        await self._transport.request(
            session.ip, session.target, MessageType.LIGHT_SET_POWER,
            packet.set_power_payload(level, TRANSITION_MS),
            expect=MessageType.ACKNOWLEDGEMENT, timeout=self._request_timeout,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_state(self, device_id: str, state: DeviceState) -> None:
        async def _apply(session: _Session) -> None:
            if not state.on:
                await self._set_power(session, packet.POWER_OFF)
                return
            await self._set_power(session, packet.POWER_ON)
            await self._transport.request(
                session.ip, session.target, MessageType.LIGHT_SET_COLOR,
                packet.set_color_payload(state_to_hsbk(state), TRANSITION_MS),
                expect=MessageType.ACKNOWLEDGEMENT, timeout=self._request_timeout,
            )

        await self._with_session(device_id, _apply)

    async def get_state(self, device_id: str) -> DeviceState:
        async def _read(session: _Session) -> DeviceState:
            reply = await self._transport.request(
                session.ip, session.target, MessageType.LIGHT_GET,
                expect=MessageType.LIGHT_STATE, timeout=self._request_timeout,
            )
            try:
                parsed = packet.parse_light_state(reply.payload)
            except struct.error as exc:
                raise ProtocolError(f"{device_id}: malformed LightState") from exc
            return hsbk_to_state(parsed.power, parsed.color)

        return await self._with_session(device_id, _read)

    async def turn_on(self, device_id: str) -> None:
        await self._with_session(device_id, lambda s: self._set_power(s, packet.POWER_ON))
        logger.info("LIFX power on for %s", device_id)

    async def turn_off(self, device_id: str) -> None:
        await self._with_session(device_id, lambda s: self._set_power(s, packet.POWER_OFF))
        logger.info("LIFX power off for %s", device_id)

    async def close(self) -> None:
        self._sessions.clear()
