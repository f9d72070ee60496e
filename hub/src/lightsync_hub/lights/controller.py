"""The capability contract every brand controller satisfies.

Each protocol owns its transport end to end and only has to match this
structural interface; the device manager holds controllers in a single
``brand -> controller`` map.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lightsync_hub.models import Brand, Device, DeviceState


@runtime_checkable
class LightController(Protocol):
    """Discovery and command surface for one lighting protocol.

    Commands raise :class:`~lightsync_hub.errors.ProtocolError` (or a
    subclass) when the device cannot be driven; session-oriented controllers
    retry once internally before raising.
    """

    @property
    def brand(self) -> Brand: ...

    async def discover(self, timeout: float) -> list[Device]: ...

    async def set_state(self, device_id: str, state: DeviceState) -> None: ...

    async def get_state(self, device_id: str) -> DeviceState: ...

    async def turn_on(self, device_id: str) -> None: ...

    async def turn_off(self, device_id: str) -> None: ...

    async def close(self) -> None: ...
