"""Integration tests for scene CRUD, trigger uniqueness and activation fan-out."""

from __future__ import annotations

import pytest

from lightsync_hub.errors import ConflictError, NotFoundError
from lightsync_hub.models import DeviceState, Scene, SceneTrigger
from lightsync_hub.scenes.manager import SceneManager

ON = DeviceState(on=True, brightness=0.8, kelvin=4000)
OFF = DeviceState(on=False)


class TestCrud:
    async def test_create_and_get(self, scene_manager: SceneManager) -> None:
        scene = await scene_manager.create_scene("Focus", devices={"lifx:d073d5000001": ON})
        fetched = await scene_manager.get_scene(scene.id)
        assert fetched == scene
        assert fetched.trigger == SceneTrigger.NONE

    async def test_scenes_keep_creation_order(self, scene_manager) -> None:
        for name in ("A", "B", "C"):
            await scene_manager.create_scene(name)
        assert [s.name for s in await scene_manager.get_scenes()] == ["A", "B", "C"]

    async def test_untriggered_scenes_are_unlimited(self, scene_manager) -> None:
        for i in range(5):
            await scene_manager.create_scene(f"Manual {i}", trigger=None)
        assert len(await scene_manager.get_scenes()) == 5

    async def test_duplicate_trigger_conflicts(self, scene_manager) -> None:
        await scene_manager.create_scene("Call", trigger=SceneTrigger.CAMERA_ON)
        with pytest.raises(ConflictError):
            await scene_manager.create_scene("Other call", trigger="camera_on")
        assert len(await scene_manager.get_scenes()) == 1

    async def test_update_may_keep_own_trigger(self, scene_manager) -> None:
        scene = await scene_manager.create_scene("Call", trigger=SceneTrigger.CAMERA_ON)
        updated = scene.model_copy(update={"name": "Video call"})
        await scene_manager.update_scene(updated)
        assert (await scene_manager.get_scene(scene.id)).name == "Video call"

    async def test_update_into_taken_trigger_conflicts(self, scene_manager) -> None:
        await scene_manager.create_scene("Call", trigger=SceneTrigger.CAMERA_ON)
        other = await scene_manager.create_scene("Idle")
        with pytest.raises(ConflictError):
            await scene_manager.update_scene(other.model_copy(update={"trigger": SceneTrigger.CAMERA_ON}))

    async def test_editor_fields_round_trip(self, scene_manager) -> None:
        scene = await scene_manager.create_scene("Warm", global_kelvin=2700)
        assert (await scene_manager.get_scene(scene.id)).global_kelvin == 2700

    async def test_delete(self, scene_manager) -> None:
        scene = await scene_manager.create_scene("Gone")
        await scene_manager.delete_scene(scene.id)
        with pytest.raises(NotFoundError):
            await scene_manager.get_scene(scene.id)

    async def test_delete_unknown(self, scene_manager) -> None:
        with pytest.raises(NotFoundError):
            await scene_manager.delete_scene("missing")

    async def test_deleting_active_scene_clears_it(self, scene_manager) -> None:
        scene = await scene_manager.create_scene("Active")
        await scene_manager.activate_scene(scene.id)
        await scene_manager.delete_scene(scene.id)
        assert scene_manager.get_active_scene() is None


class TestActivation:
    async def test_applies_every_device(self, scene_manager, lifx, elgato) -> None:
        scene = await scene_manager.create_scene(
            "Evening", devices={"lifx:d073d5000001": ON, "elgato:10.0.0.40": OFF}
        )
        await scene_manager.activate_scene(scene.id)
        assert lifx.states["lifx:d073d5000001"] == ON
        assert elgato.states["elgato:10.0.0.40"] == OFF
        assert scene_manager.get_active_scene() == scene.id

    async def test_unknown_scene_emits_nothing(self, scene_manager, lifx) -> None:
        notified: list[Scene] = []
        scene_manager.on_activated(notified.append)
        with pytest.raises(NotFoundError):
            await scene_manager.activate_scene("missing")
        assert notified == []
        assert scene_manager.get_active_scene() is None
        assert lifx.calls == []

    async def test_listener_runs_before_commands(self, scene_manager, lifx) -> None:
        order: list[str] = []
        scene_manager.on_activated(lambda scene: order.append(f"notify:{len(lifx.calls)}"))
        scene = await scene_manager.create_scene("Evening", devices={"lifx:d073d5000001": ON})
        await scene_manager.activate_scene(scene.id)
        assert order == ["notify:0"]

    async def test_partial_failure_is_tolerated(self, scene_manager, lifx, elgato) -> None:
        lifx.failing.add("lifx:d073d5000001")
        scene = await scene_manager.create_scene(
            "Mixed",
            devices={
                "lifx:d073d5000001": ON,
                "lifx:d073d5000002": ON,
                "hue:unknown": ON,
                "elgato:10.0.0.40": ON,
            },
        )
        await scene_manager.activate_scene(scene.id)
        assert "lifx:d073d5000002" in lifx.states
        assert "elgato:10.0.0.40" in elgato.states
        assert scene_manager.get_active_scene() == scene.id

    async def test_fan_out_is_bounded(self, store, manager, lifx) -> None:
        lifx.hang = True
        scenes = SceneManager(store, manager, activation_timeout=0.05)
        scene = await scenes.create_scene("Stuck", devices={"lifx:d073d5000001": ON})
        activated = await scenes.activate_scene(scene.id)
        assert activated.id == scene.id

    async def test_failing_listener_does_not_block_activation(self, scene_manager, lifx) -> None:
        def broken(scene: Scene) -> None:
            raise RuntimeError("ui gone")

        scene_manager.on_activated(broken)
        scene = await scene_manager.create_scene("Evening", devices={"lifx:d073d5000001": ON})
        await scene_manager.activate_scene(scene.id)
        assert "lifx:d073d5000001" in lifx.states


class TestSensorTriggers:
    async def test_edge_activates_matching_scene(self, scene_manager, lifx) -> None:
        on_scene = await scene_manager.create_scene(
            "Call", trigger=SceneTrigger.CAMERA_ON, devices={"lifx:d073d5000001": ON}
        )
        off_scene = await scene_manager.create_scene(
            "After call", trigger=SceneTrigger.CAMERA_OFF, devices={"lifx:d073d5000001": OFF}
        )
        assert (await scene_manager.on_sensor_change(True)).id == on_scene.id
        assert lifx.states["lifx:d073d5000001"] == ON
        assert (await scene_manager.on_sensor_change(False)).id == off_scene.id
        assert lifx.states["lifx:d073d5000001"] == OFF

    async def test_unbound_edge_is_noop(self, scene_manager, lifx) -> None:
        await scene_manager.create_scene("Manual", devices={"lifx:d073d5000001": ON})
        assert await scene_manager.on_sensor_change(True) is None
        assert lifx.calls == []
