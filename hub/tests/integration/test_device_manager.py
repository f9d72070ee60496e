"""Integration tests for the device manager: routing, registry, discovery merge."""

from __future__ import annotations

import asyncio

import pytest

from lightsync_hub.errors import DiscoveryFailedError, NotFoundError, ProtocolError, UnreachableError
from lightsync_hub.lights.controller import LightController
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import Brand, DeviceState


class TestRouting:
    def test_fake_satisfies_controller_protocol(self, lifx) -> None:
        assert isinstance(lifx, LightController)

    def test_get_controller(self, manager, lifx) -> None:
        assert manager.get_controller(Brand.LIFX) is lifx
        assert manager.get_controller("lifx") is lifx
        assert manager.get_controller("hue") is None
        assert manager.get_controller("nanoleaf") is None

    async def test_commands_route_by_brand(self, manager, lifx, elgato) -> None:
        await manager.turn_on("lifx:d073d5000001")
        await manager.turn_off("elgato:10.0.0.40")
        await manager.set_device_state("lifx:d073d5000002", DeviceState(on=True, brightness=0.4))
        assert lifx.calls == [("turn_on", "lifx:d073d5000001"), ("set_state", "lifx:d073d5000002")]
        assert elgato.calls == [("turn_off", "elgato:10.0.0.40")]

    async def test_get_device_state(self, manager, lifx) -> None:
        lifx.states["lifx:d073d5000001"] = DeviceState(on=True, brightness=0.9)
        state = await manager.get_device_state("lifx:d073d5000001")
        assert state.brightness == pytest.approx(0.9)

    async def test_unregistered_brand_is_not_found(self, manager) -> None:
        with pytest.raises(NotFoundError):
            await manager.turn_on("hue:abc")

    async def test_malformed_id_is_not_found(self, manager) -> None:
        with pytest.raises(NotFoundError):
            await manager.turn_on("no-delimiter")

    async def test_controller_errors_propagate_unretried(self, manager, lifx) -> None:
        lifx.failing.add("lifx:d073d5000001")
        with pytest.raises(ProtocolError):
            await manager.turn_on("lifx:d073d5000001")
        assert lifx.calls == [("turn_on", "lifx:d073d5000001")]

    async def test_hanging_command_is_bounded(self, manager, lifx) -> None:
        lifx.hang = True
        with pytest.raises(UnreachableError):
            await manager.turn_on("lifx:d073d5000001", timeout=0.05)


class TestDiscovery:
    async def test_merges_all_controllers(self, manager) -> None:
        result = await manager.discover_all(1.0)
        assert len(result.devices) == 3
        assert result.errors == []
        assert [d.name for d in manager.get_devices()] == ["Key Light", "Desk", "Shelf"]

    async def test_streams_per_controller(self, manager) -> None:
        batches: list[int] = []
        await manager.discover_all(1.0, on_devices=lambda devices: batches.append(len(devices)))
        assert sorted(batches) == [1, 2]

    async def test_partial_failure_keeps_other_results(self, manager, elgato) -> None:
        elgato.discover_error = ProtocolError("probe failed")
        result = await manager.discover_all(1.0)
        assert len(result.devices) == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("elgato:")

    async def test_all_failed_raises(self, manager, lifx, elgato) -> None:
        lifx.discover_error = ProtocolError("no socket")
        elgato.discover_error = ProtocolError("probe failed")
        with pytest.raises(DiscoveryFailedError) as excinfo:
            await manager.discover_all(1.0)
        assert len(excinfo.value.errors) == 2

    async def test_empty_network_is_not_an_error(self, fake_controller) -> None:
        mgr = DeviceManager()
        mgr.register_controller(fake_controller(Brand.GOVEE))
        result = await mgr.discover_all(1.0)
        assert result.devices == []
        assert result.errors == []

    async def test_hanging_controller_is_cut_off(self, manager, elgato) -> None:
        elgato.hang = True
        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await manager.discover_all(0.1)
        assert loop.time() - started < 1.0
        assert len(result.devices) == 2
        assert result.errors == ["elgato: discovery timed out"]

    async def test_rediscovery_keeps_room(self, manager) -> None:
        await manager.discover_all(1.0)
        await manager.set_device_room("lifx:d073d5000001", "Office")
        await manager.discover_all(1.0)
        assert manager.get_device("lifx:d073d5000001").room == "Office"


class TestRegistry:
    async def test_restore_and_lookup(self, device_factory) -> None:
        mgr = DeviceManager()
        await mgr.restore([device_factory("hue", "1", "Lamp", room="Den")])
        assert mgr.get_device("hue:1").room == "Den"

    def test_get_unknown_device(self, manager) -> None:
        with pytest.raises(NotFoundError):
            manager.get_device("lifx:nope")

    async def test_set_room_and_clear(self, manager) -> None:
        await manager.discover_all(1.0)
        assert (await manager.set_device_room("elgato:10.0.0.40", "Studio")).room == "Studio"
        assert (await manager.set_device_room("elgato:10.0.0.40", "")).room is None

    async def test_set_room_unknown_device(self, manager) -> None:
        with pytest.raises(NotFoundError):
            await manager.set_device_room("lifx:nope", "Office")

    async def test_remove_device(self, manager) -> None:
        await manager.discover_all(1.0)
        await manager.remove_device("elgato:10.0.0.40")
        assert len(manager.get_devices()) == 2
        with pytest.raises(NotFoundError):
            await manager.remove_device("elgato:10.0.0.40")

    async def test_close_closes_every_controller(self, manager, lifx, elgato) -> None:
        await manager.close()
        assert lifx.closed and elgato.closed

    def test_snapshot(self, manager) -> None:
        assert manager.snapshot() == {"controllers": ["elgato", "lifx"], "device_count": 0}
