"""Scene CRUD and activation.

At most one scene may claim each sensor trigger; scenes without a trigger
are unrestricted. Activation marks the scene active and notifies listeners
before any device command is sent, then fans the stored states out through
the device manager. Per-device failures are logged and skipped, and the
whole fan-out runs under one deadline.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from lightsync_hub.db.store import HubStore
from lightsync_hub.errors import ConflictError, NotFoundError
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import Color, DeviceState, Scene, SceneTrigger

logger = logging.getLogger(__name__)

SceneCallback = Callable[[Scene], Awaitable[None] | None]


class SceneManager:
    """Scene storage rules, the active-scene value, and trigger dispatch.

    Parameters
    ----------
    store:
        Persistence for scene records.
    devices:
        Device manager used for the activation fan-out.
    activation_timeout:
        Deadline in seconds for one activation's device commands.
    on_activated:
        Optional callback receiving the activated scene, invoked before
        device commands are sent.
    """

    def __init__(
        self,
        store: HubStore,
        devices: DeviceManager,
        activation_timeout: float = 10.0,
        on_activated: SceneCallback | None = None,
    ) -> None:
        self._store = store
        self._devices = devices
        self._activation_timeout = activation_timeout
        self._on_activated = on_activated
        self._active_scene: str | None = None
        # Serializes read-modify-write against the store and the active value.
        self._lock = asyncio.Lock()

    def on_activated(self, callback: SceneCallback | None) -> None:
        self._on_activated = callback

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_scenes(self) -> list[Scene]:
        return await self._store.get_scenes()

    async def get_scene(self, scene_id: str) -> Scene:
        for scene in await self._store.get_scenes():
            if scene.id == scene_id:
                return scene
        raise NotFoundError(f"scene {scene_id} not found")

    def get_active_scene(self) -> str | None:
        return self._active_scene

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def _check_trigger(self, trigger: SceneTrigger, exclude_id: str | None) -> None:
        if trigger == SceneTrigger.NONE:
            return
        for scene in await self._store.get_scenes():
            if scene.id != exclude_id and scene.trigger == trigger:
                raise ConflictError(
                    f"trigger {trigger.value!r} is already used by scene {scene.name!r}"
                )

    async def create_scene(
        self,
        name: str,
        trigger: SceneTrigger | str | None = None,
        devices: dict[str, DeviceState] | None = None,
        global_color: Color | None = None,
        global_kelvin: int | None = None,
    ) -> Scene:
        scene = Scene(
            name=name,
            trigger=trigger,
            devices=devices or {},
            global_color=global_color,
            global_kelvin=global_kelvin,
        )
        async with self._lock:
            await self._check_trigger(scene.trigger, None)
            await self._store.upsert_scene(scene)
        logger.info("Created scene %s (%s)", scene.id, scene.name)
        return scene

    async def update_scene(self, scene: Scene) -> Scene:
        async with self._lock:
            await self._check_trigger(scene.trigger, scene.id)
            await self._store.upsert_scene(scene)
        logger.info("Updated scene %s (%s)", scene.id, scene.name)
        return scene

    async def delete_scene(self, scene_id: str) -> None:
        async with self._lock:
            if not await self._store.delete_scene(scene_id):
                raise NotFoundError(f"scene {scene_id} not found")
            if self._active_scene == scene_id:
                self._active_scene = None
        logger.info("Deleted scene %s", scene_id)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def activate_scene(self, scene_id: str) -> Scene:
        """Activate a scene. Only an unknown id is an error."""
        scene = await self.get_scene(scene_id)

        async with self._lock:
            self._active_scene = scene.id
        logger.info("Activating scene %s (%s)", scene.id, scene.name)

        if self._on_activated is not None:
            try:
                outcome = self._on_activated(scene)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Scene activation listener failed for %s", scene.id)

        applied = 0
        try:
            async with asyncio.timeout(self._activation_timeout):
                for device_id, state in scene.devices.items():
                    try:
                        await self._devices.set_device_state(device_id, state)
                        applied += 1
                    except Exception as exc:
                        logger.warning(
                            "Scene %s: failed to apply state to %s: %s", scene.id, device_id, exc
                        )
        except TimeoutError:
            logger.warning(
                "Scene %s: activation timed out after %.1fs (%d of %d applied)",
                scene.id, self._activation_timeout, applied, len(scene.devices),
            )
        return scene

    async def on_sensor_change(self, value: bool) -> Scene | None:
        """Activate the first scene whose trigger matches the sensor edge."""
        trigger = SceneTrigger.for_sensor(value)
        for scene in await self._store.get_scenes():
            if scene.trigger == trigger:
                logger.info("Sensor edge %s matched scene %s", trigger.value, scene.id)
                return await self.activate_scene(scene.id)
        logger.debug("No scene bound to %s", trigger.value)
        return None

    def snapshot(self) -> dict[str, Any]:
        return {"active_scene": self._active_scene}
