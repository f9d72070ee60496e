"""FastAPI dependency injection providers.

Every provider raises until ``__main__`` (or a test) installs the real
object through ``app.dependency_overrides``.
"""
from __future__ import annotations

from lightsync_hub.config import Settings
from lightsync_hub.db.store import HubStore
from lightsync_hub.discovery.scanner import DiscoveryScanner
from lightsync_hub.events.bus import EventBus
from lightsync_hub.lights.hue import HueController
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.scenes.manager import SceneManager
from lightsync_hub.sensors.monitor import SensorMonitor

_NOT_WIRED = "Must be overridden via dependency_overrides"


async def get_config() -> Settings:
    """Return the loaded hub settings."""
    raise NotImplementedError(_NOT_WIRED)


async def get_store() -> HubStore:
    """Return the persistence store opened during startup."""
    raise NotImplementedError(_NOT_WIRED)


async def get_event_bus() -> EventBus:
    raise NotImplementedError(_NOT_WIRED)


async def get_device_manager() -> DeviceManager:
    raise NotImplementedError(_NOT_WIRED)


async def get_scene_manager() -> SceneManager:
    raise NotImplementedError(_NOT_WIRED)


async def get_scanner() -> DiscoveryScanner:
    raise NotImplementedError(_NOT_WIRED)


async def get_monitor() -> SensorMonitor:
    raise NotImplementedError(_NOT_WIRED)


async def get_hue_controller() -> HueController:
    """Return the Hue controller that owns paired bridge sessions."""
    raise NotImplementedError(_NOT_WIRED)
