"""Philips Hue controller over the bridge's CLIP v2 REST API.

Hue has no discovery of its own: each paired bridge is registered with
:meth:`HueController.add_bridge` and "discovery" lists the bridge's light and
device resources. Bridges serve a self-signed certificate, so TLS
verification is disabled for bridge traffic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from lightsync_hub.colors import hsb_to_xy, kelvin_to_mirek, mirek_to_kelvin
from lightsync_hub.errors import (
    BridgeUnreachableError,
    LinkButtonNotPressedError,
    NotFoundError,
    PairingError,
    ProtocolError,
    UnreachableError,
    ValidationError,
)
from lightsync_hub.models import Brand, Device, DeviceID, DeviceState

logger = logging.getLogger(__name__)

HUE_MIN_KELVIN = 2000
HUE_MAX_KELVIN = 6535
DEVICE_TYPE = "lightsync#hub"
_LINK_BUTTON_ERROR = 101


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------

async def pair_bridge(
    address: str,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Run the link-button handshake against a bridge and return its token.

    Raises
    ------
    LinkButtonNotPressedError
        The bridge answered with error type 101.
    BridgeUnreachableError
        The request never reached the bridge.
    ValidationError
        The bridge answered with nothing usable.
    """
    body = {"devicetype": DEVICE_TYPE, "generateclientkey": True}
    try:
        async with httpx.AsyncClient(verify=False, timeout=timeout, transport=transport) as client:
            resp = await client.post(f"https://{address}/api", json=body)
    except httpx.TransportError as exc:
        raise BridgeUnreachableError(f"bridge {address} unreachable: {exc}") from exc

    try:
        entries = resp.json()
    except ValueError as exc:
        raise ValidationError(f"bridge {address} returned an unparseable pairing reply") from exc
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        raise ValidationError(f"bridge {address} returned an empty pairing reply")

    entry = entries[0]
    if "error" in entry:
        error = entry["error"] or {}
        if error.get("type") == _LINK_BUTTON_ERROR:
            raise LinkButtonNotPressedError("link button not pressed")
        raise PairingError(error.get("description") or "pairing failed")

    username = (entry.get("success") or {}).get("username")
    if not username:
        raise ValidationError(f"bridge {address} returned no username")
    logger.info("Paired with Hue bridge %s", address)
    return username


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def state_to_body(state: DeviceState) -> dict[str, Any]:
    """Build the light PUT body for a desired state."""
    body: dict[str, Any] = {
        "on": {"on": state.on},
        "dimming": {"brightness": state.brightness * 100.0},
    }
    if state.color is not None:
        x, y = hsb_to_xy(state.color.h, state.color.s, state.color.b)
        body["color"] = {"xy": {"x": x, "y": y}}
    if state.kelvin is not None:
        body["color_temperature"] = {
            "mirek": kelvin_to_mirek(state.kelvin, HUE_MIN_KELVIN, HUE_MAX_KELVIN)
        }
    return body


def body_to_state(light: dict[str, Any]) -> DeviceState:
    on = bool((light.get("on") or {}).get("on", False))
    brightness = 1.0
    dimming = light.get("dimming") or {}
    if dimming.get("brightness") is not None:
        brightness = min(max(float(dimming["brightness"]) / 100.0, 0.0), 1.0)
    kelvin = None
    mirek = (light.get("color_temperature") or {}).get("mirek")
    if mirek is not None:
        kelvin = mirek_to_kelvin(int(mirek))
    return DeviceState(on=on, brightness=brightness, kelvin=kelvin)


def _kelvin_range(light: dict[str, Any]) -> tuple[int, int]:
    schema = (light.get("color_temperature") or {}).get("mirek_schema") or {}
    mirek_max = schema.get("mirek_maximum") or 0
    mirek_min = schema.get("mirek_minimum") or 0
    min_kelvin = round(1_000_000 / mirek_max) if mirek_max > 0 else 0
    max_kelvin = round(1_000_000 / mirek_min) if mirek_min > 0 else 0
    return min_kelvin, max_kelvin


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

@dataclass
class _Bridge:
    address: str
    client: httpx.AsyncClient
    lights: dict[str, str] = field(default_factory=dict)


class HueController:
    """Brand controller for lights behind one or more Hue bridges.

    Parameters
    ----------
    request_timeout:
        Per-request deadline in seconds.
    transport:
        Optional httpx transport shared by every bridge client; tests pass
        an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        request_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._request_timeout = request_timeout
        self._transport = transport
        self._bridges: dict[str, _Bridge] = {}

    @property
    def brand(self) -> Brand:
        return Brand.HUE

    # ------------------------------------------------------------------
    # Bridge registry
    # ------------------------------------------------------------------

    async def add_bridge(self, address: str, token: str) -> None:
        client = httpx.AsyncClient(
            base_url=f"https://{address}",
            headers={"hue-application-key": token},
            verify=False,
            timeout=self._request_timeout,
            transport=self._transport,
        )
        previous = self._bridges.pop(address, None)
        self._bridges[address] = _Bridge(address=address, client=client)
        if previous is not None:
            await previous.client.aclose()
        logger.info("Registered Hue bridge %s", address)

    async def remove_bridge(self, address: str) -> None:
        bridge = self._bridges.pop(address, None)
        if bridge is None:
            raise NotFoundError(f"bridge {address} not registered")
        await bridge.client.aclose()
        logger.info("Removed Hue bridge %s", address)

    def bridges(self) -> list[str]:
        return sorted(self._bridges)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, timeout: float) -> list[Device]:
        logger.info("Hue discover: %d bridge(s) registered", len(self._bridges))
        devices: list[Device] = []
        errors: list[str] = []
        for bridge in list(self._bridges.values()):
            try:
                devices.extend(await self._discover_bridge(bridge))
            except (httpx.HTTPError, ValueError, ProtocolError, ValidationError) as exc:
                logger.warning("Hue bridge %s: %s", bridge.address, exc)
                errors.append(f"{bridge.address}: {exc}")
        if errors and not devices:
            raise ProtocolError("; ".join(errors))
        return devices

    async def _discover_bridge(self, bridge: _Bridge) -> list[Device]:
        resp = await bridge.client.get("/clip/v2/resource/light")
        resp.raise_for_status()
        lights = resp.json().get("data")
        if lights is None:
            raise ValidationError(f"bridge {bridge.address} returned no light data")

        meta: dict[str, dict[str, Any]] = {}
        try:
            dev_resp = await bridge.client.get("/clip/v2/resource/device")
            dev_resp.raise_for_status()
            for entry in dev_resp.json().get("data") or []:
                if entry.get("id") and entry.get("product_data"):
                    meta[entry["id"]] = entry["product_data"]
        except (httpx.HTTPError, ValueError):
            logger.debug("Hue bridge %s device metadata unavailable", bridge.address, exc_info=True)

        now = datetime.now(timezone.utc)
        devices: list[Device] = []
        for light in lights:
            light_id = light.get("id")
            if not light_id:
                continue
            device_id = DeviceID.build(Brand.HUE, light_id)
            bridge.lights[device_id] = light_id
            product = meta.get((light.get("owner") or {}).get("rid", ""), {})
            min_kelvin, max_kelvin = _kelvin_range(light)
            devices.append(Device(
                id=device_id,
                brand=Brand.HUE,
                name=(light.get("metadata") or {}).get("name") or "Hue Light",
                model=product.get("product_name") or product.get("model_id"),
                last_ip=bridge.address,
                last_seen=now,
                supports_color=light.get("color") is not None,
                supports_kelvin=light.get("color_temperature") is not None,
                min_kelvin=min_kelvin,
                max_kelvin=max_kelvin,
                kelvin_step=1,
                firmware_version=product.get("software_version"),
            ))
        logger.info("Hue bridge %s: found %d light(s)", bridge.address, len(devices))
        return devices

    def _find(self, device_id: str) -> tuple[_Bridge, str]:
        for bridge in self._bridges.values():
            light_id = bridge.lights.get(device_id)
            if light_id is not None:
                return bridge, light_id
        raise NotFoundError(f"device {device_id} not connected")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_state(self, device_id: str, state: DeviceState) -> None:
        bridge, light_id = self._find(device_id)
        try:
            resp = await bridge.client.put(
                f"/clip/v2/resource/light/{light_id}", json=state_to_body(state)
            )
        except httpx.TransportError as exc:
            raise UnreachableError(f"bridge {bridge.address}: {exc}") from exc
        if resp.status_code != 200:
            logger.warning("Hue update %s returned HTTP %d", device_id, resp.status_code)
            raise ProtocolError(f"bridge returned HTTP {resp.status_code}")

    async def get_state(self, device_id: str) -> DeviceState:
        bridge, light_id = self._find(device_id)
        try:
            resp = await bridge.client.get(f"/clip/v2/resource/light/{light_id}")
            resp.raise_for_status()
            data = resp.json().get("data") or []
        except httpx.TransportError as exc:
            raise UnreachableError(f"bridge {bridge.address}: {exc}") from exc
        except (httpx.HTTPStatusError, ValueError) as exc:
            raise ProtocolError(f"bridge {bridge.address}: {exc}") from exc
        if not data:
            raise ValidationError(f"no data for device {device_id}")
        return body_to_state(data[0])

    async def turn_on(self, device_id: str) -> None:
        await self.set_state(device_id, DeviceState(on=True, brightness=1.0))

    async def turn_off(self, device_id: str) -> None:
        await self.set_state(device_id, DeviceState(on=False))

    async def close(self) -> None:
        for bridge in self._bridges.values():
            await bridge.client.aclose()
        self._bridges.clear()
