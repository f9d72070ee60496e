"""Device manager: registry of brand controllers and known devices.

Commands are routed by the brand half of the device identity. The manager
never retries on a controller's behalf; reconnect policy belongs entirely to
the controller. Discovery fans out to every controller concurrently and
merges the results into the registry without clobbering user-assigned fields.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from lightsync_hub.errors import (
    DiscoveryFailedError,
    NotFoundError,
    UnreachableError,
)
from lightsync_hub.lights.controller import LightController
from lightsync_hub.models import Brand, Device, DeviceID, DeviceState, DiscoveryResult

logger = logging.getLogger(__name__)

# Called once per controller that finished discovery with at least one device.
DevicesCallback = Callable[[list[Device]], Awaitable[None] | None]


class DeviceManager:
    """Routes commands to brand controllers and owns the device registry.

    Parameters
    ----------
    command_timeout:
        Default deadline in seconds for a single-device command.
    """

    def __init__(self, command_timeout: float = 5.0) -> None:
        self._command_timeout = command_timeout
        self._controllers: dict[Brand, LightController] = {}
        self._devices: dict[str, Device] = {}
        # Writers hold this only for the registry mutation, never across I/O.
        # Readers take a snapshot without awaiting, which the event loop
        # already makes consistent.
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Controller registry
    # ------------------------------------------------------------------

    def register_controller(self, controller: LightController) -> None:
        self._controllers[controller.brand] = controller
        logger.info("Registered %s controller", controller.brand.value)

    def get_controller(self, brand: Brand | str) -> LightController | None:
        try:
            return self._controllers.get(Brand(brand))
        except ValueError:
            return None

    def _controller_for(self, device_id: str) -> LightController:
        brand = DeviceID.parse(device_id).brand
        controller = self.get_controller(brand)
        if controller is None:
            raise NotFoundError(f"no controller for brand {brand!r}")
        return controller

    # ------------------------------------------------------------------
    # Device registry
    # ------------------------------------------------------------------

    async def restore(self, devices: list[Device]) -> None:
        """Seed the registry from persisted records at startup."""
        async with self._lock:
            for device in devices:
                self._devices[device.id] = device
        logger.info("Restored %d device(s) from storage", len(devices))

    def get_devices(self) -> list[Device]:
        devices = list(self._devices.values())
        devices.sort(key=lambda d: (d.brand.value, d.name))
        return devices

    def get_device(self, device_id: str) -> Device:
        device = self._devices.get(device_id)
        if device is None:
            raise NotFoundError(f"device {device_id} not found")
        return device

    async def set_device_room(self, device_id: str, room: str | None) -> Device:
        async with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                raise NotFoundError(f"device {device_id} not found")
            device = device.model_copy(update={"room": room or None})
            self._devices[device_id] = device
        return device

    async def remove_device(self, device_id: str) -> None:
        async with self._lock:
            if self._devices.pop(device_id, None) is None:
                raise NotFoundError(f"device {device_id} not found")
        logger.info("Removed device %s", device_id)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover_all(
        self,
        timeout: float,
        on_devices: DevicesCallback | None = None,
    ) -> DiscoveryResult:
        """Run every controller's discovery concurrently and merge the results.

        Controllers still running when *timeout* expires are cancelled and
        reported as errors; whatever the others produced is kept. Raises
        :class:`DiscoveryFailedError` only when nothing was found and at least
        one controller failed.
        """
        controllers = list(self._controllers.values())
        found: list[Device] = []
        errors: list[str] = []

        async def _run(controller: LightController) -> None:
            brand = controller.brand.value
            try:
                devices = await controller.discover(timeout)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Discovery failed for %s: %s", brand, exc)
                errors.append(f"{brand}: {exc}")
                return
            logger.info("Discovery for %s found %d device(s)", brand, len(devices))
            found.extend(devices)
            if on_devices is not None and devices:
                result = on_devices(devices)
                if inspect.isawaitable(result):
                    await result

        tasks = {asyncio.create_task(_run(c)): c for c in controllers}
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
                brand = tasks[task].brand.value
                logger.warning("Discovery for %s timed out after %.1fs", brand, timeout)
                errors.append(f"{brand}: discovery timed out")

        async with self._lock:
            merged: list[Device] = []
            for device in found:
                existing = self._devices.get(device.id)
                if existing is not None:
                    device = device.merged_with(existing)
                self._devices[device.id] = device
                merged.append(device)

        if errors and not merged:
            raise DiscoveryFailedError(errors)
        return DiscoveryResult(devices=merged, errors=errors)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _deadline(
        self, device_id: str, action: str, timeout: float | None
    ) -> AsyncIterator[None]:
        try:
            async with asyncio.timeout(timeout if timeout is not None else self._command_timeout):
                yield
        except TimeoutError as exc:
            raise UnreachableError(f"{action} {device_id}: timed out") from exc
        except OSError as exc:
            raise UnreachableError(f"{action} {device_id}: {exc}") from exc

    async def set_device_state(
        self, device_id: str, state: DeviceState, timeout: float | None = None
    ) -> None:
        controller = self._controller_for(device_id)
        logger.info(
            "SetDeviceState %s: on=%s brightness=%.2f",
            device_id, state.on, state.brightness,
        )
        async with self._deadline(device_id, "set state", timeout):
            await controller.set_state(device_id, state)

    async def get_device_state(
        self, device_id: str, timeout: float | None = None
    ) -> DeviceState:
        controller = self._controller_for(device_id)
        async with self._deadline(device_id, "get state", timeout):
            return await controller.get_state(device_id)

    async def turn_on(self, device_id: str, timeout: float | None = None) -> None:
        controller = self._controller_for(device_id)
        logger.info("TurnOn %s", device_id)
        async with self._deadline(device_id, "turn on", timeout):
            await controller.turn_on(device_id)

    async def turn_off(self, device_id: str, timeout: float | None = None) -> None:
        controller = self._controller_for(device_id)
        logger.info("TurnOff %s", device_id)
        async with self._deadline(device_id, "turn off", timeout):
            await controller.turn_off(device_id)

    async def close(self) -> None:
        for controller in list(self._controllers.values()):
            try:
                await controller.close()
            except Exception:
                logger.exception("Failed to close %s controller", controller.brand.value)

    def snapshot(self) -> dict[str, Any]:
        return {
            "controllers": sorted(b.value for b in self._controllers),
            "device_count": len(self._devices),
        }
