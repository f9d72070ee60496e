"""Elgato Key Light controller (plain HTTP on port 9123).

Lights are registered by address, either from mDNS or a subnet probe, and
discovery simply asks every known address for its accessory info. The light
API speaks colour temperature in mireds and rejects brightness below a small
floor, so both are clamped before sending.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from lightsync_hub.colors import kelvin_to_mirek, mirek_to_kelvin
from lightsync_hub.errors import NotFoundError, ProtocolError, UnreachableError, ValidationError
from lightsync_hub.models import DEFAULT_KELVIN, Brand, Device, DeviceID, DeviceState

logger = logging.getLogger(__name__)

T = TypeVar("T")

ELGATO_PORT = 9123
ELGATO_MIN_KELVIN = 2900
ELGATO_MAX_KELVIN = 7000
ELGATO_KELVIN_STEP = 50


def build_lights_body(state: DeviceState, min_brightness: int = 3) -> dict[str, Any]:
    """PUT body for ``/elgato/lights`` with Kelvin and brightness clamped."""
    kelvin = state.kelvin if state.kelvin is not None else DEFAULT_KELVIN
    brightness = min(max(round(state.brightness * 100), min_brightness), 100)
    return {
        "numberOfLights": 1,
        "lights": [{
            "on": 1 if state.on else 0,
            "brightness": brightness,
            "temperature": kelvin_to_mirek(kelvin, ELGATO_MIN_KELVIN, ELGATO_MAX_KELVIN),
        }],
    }


class ElgatoController:
    """Brand controller for Elgato lights.

    Parameters
    ----------
    request_timeout:
        Per-request deadline in seconds.
    min_brightness:
        Lowest brightness percentage the light accepts.
    reconnect_attempts:
        How many fresh-client retries a failed command gets.
    transport:
        Optional httpx transport; tests pass an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        request_timeout: float = 5.0,
        min_brightness: int = 3,
        reconnect_attempts: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._request_timeout = request_timeout
        self._min_brightness = min_brightness
        self._reconnect_attempts = reconnect_attempts
        self._transport = transport
        self._clients: dict[str, httpx.AsyncClient] = {}

    @property
    def brand(self) -> Brand:
        return Brand.ELGATO

    def _new_client(self, ip: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"http://{ip}:{ELGATO_PORT}",
            timeout=self._request_timeout,
            transport=self._transport,
        )

    def add_device(self, address: str) -> str:
        """Register a light by IP address and return its device id."""
        device_id = DeviceID.build(Brand.ELGATO, address)
        if device_id not in self._clients:
            self._clients[device_id] = self._new_client(address)
            logger.info("Registered Elgato light %s", device_id)
        return device_id

    def known_addresses(self) -> list[str]:
        return sorted(DeviceID.parse(d).local_id for d in self._clients)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, timeout: float) -> list[Device]:
        known = list(self._clients.items())
        logger.info("Elgato discover: %d known address(es) to probe", len(known))
        results = await asyncio.gather(
            *(self._describe(device_id, client) for device_id, client in known)
        )
        return [d for d in results if d is not None]

    async def _describe(self, device_id: str, client: httpx.AsyncClient) -> Device | None:
        ip = DeviceID.parse(device_id).local_id
        try:
            resp = await client.get("/elgato/accessory-info")
            resp.raise_for_status()
            info = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Elgato accessory info failed for %s: %s", device_id, exc)
            return None
        logger.info("Elgato found %s (%s) at %s", info.get("displayName"), info.get("productName"), ip)
        return Device(
            id=device_id,
            brand=Brand.ELGATO,
            name=info.get("displayName") or info.get("productName") or f"Elgato {ip}",
            model=info.get("productName"),
            last_ip=ip,
            last_seen=datetime.now(timezone.utc),
            supports_color=False,
            supports_kelvin=True,
            min_kelvin=ELGATO_MIN_KELVIN,
            max_kelvin=ELGATO_MAX_KELVIN,
            kelvin_step=ELGATO_KELVIN_STEP,
            firmware_version=info.get("firmwareVersion"),
        )

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    async def _reconnect(self, device_id: str) -> httpx.AsyncClient:
        ip = DeviceID.parse(device_id).local_id
        if not ip:
            raise NotFoundError(f"cannot extract address from device id {device_id!r}")
        previous = self._clients.pop(device_id, None)
        if previous is not None:
            await previous.aclose()
        client = self._new_client(ip)
        self._clients[device_id] = client
        logger.info("Reconnected Elgato light %s", device_id)
        return client

    async def _with_client(
        self, device_id: str, action: Callable[[httpx.AsyncClient], Awaitable[T]]
    ) -> T:
        client = self._clients.get(device_id)
        if client is None:
            client = await self._reconnect(device_id)
        attempts = 0
        while True:
            try:
                return await action(client)
            except httpx.TransportError as exc:
                if attempts >= self._reconnect_attempts:
                    raise UnreachableError(f"{device_id}: {exc}") from exc
                attempts += 1
                logger.warning("Elgato request to %s failed, reconnecting: %s", device_id, exc)
                client = await self._reconnect(device_id)
            except httpx.HTTPStatusError as exc:
                raise ProtocolError(f"{device_id}: HTTP {exc.response.status_code}") from exc

    @staticmethod
    async def _read_lights(client: httpx.AsyncClient) -> dict[str, Any]:
        resp = await client.get("/elgato/lights")
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError as exc:
            raise ValidationError("unparseable lights payload") from exc
        if not body.get("lights"):
            raise ValidationError("no lights reported")
        return body

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_state(self, device_id: str, state: DeviceState) -> None:
        body = build_lights_body(state, self._min_brightness)

        async def _put(client: httpx.AsyncClient) -> None:
            resp = await client.put("/elgato/lights", json=body)
            resp.raise_for_status()

        await self._with_client(device_id, _put)
        light = body["lights"][0]
        logger.info(
            "Elgato state applied for %s: on=%s brightness=%d temperature=%d",
            device_id, state.on, light["brightness"], light["temperature"],
        )

    async def get_state(self, device_id: str) -> DeviceState:
        body = await self._with_client(device_id, self._read_lights)
        light = body["lights"][0]
        return DeviceState(
            on=bool(light.get("on")),
            brightness=min(max(light.get("brightness", 0) / 100.0, 0.0), 1.0),
            kelvin=mirek_to_kelvin(int(light.get("temperature", 0))),
        )

    async def _set_power(self, device_id: str, on: bool) -> None:
        async def _toggle(client: httpx.AsyncClient) -> None:
            body = await self._read_lights(client)
            body["lights"][0]["on"] = 1 if on else 0
            resp = await client.put("/elgato/lights", json=body)
            resp.raise_for_status()

        await self._with_client(device_id, _toggle)
        logger.info("Elgato power set to %s for %s", on, device_id)

    async def turn_on(self, device_id: str) -> None:
        await self._set_power(device_id, True)

    async def turn_off(self, device_id: str) -> None:
        await self._set_power(device_id, False)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
