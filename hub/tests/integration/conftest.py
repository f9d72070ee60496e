# hub/tests/integration/conftest.py
from __future__ import annotations

import asyncio

import aiosqlite
import httpx
import pytest
import pytest_asyncio

from lightsync_hub.config import Settings
from lightsync_hub.db.migrations import apply_migrations
from lightsync_hub.db.store import HubStore
from lightsync_hub.errors import ProtocolError
from lightsync_hub.events.bus import EventBus
from lightsync_hub.lights.hue import HueController
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import (
    Brand,
    Device,
    DeviceID,
    DeviceState,
    DiscoveredBridge,
    DiscoveryResult,
    ScanProgress,
)
from lightsync_hub.scenes.manager import SceneManager
from lightsync_hub.sensors.monitor import SensorMonitor


class FakeController:
    """Scriptable brand controller that records every command."""

    def __init__(self, brand: Brand | str, devices: list[Device] | None = None) -> None:
        self._brand = Brand(brand)
        self.devices = list(devices or [])
        self.states: dict[str, DeviceState] = {}
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self.discover_error: Exception | None = None
        self.hang = False
        self.closed = False

    @property
    def brand(self) -> Brand:
        return self._brand

    async def discover(self, timeout: float) -> list[Device]:
        if self.hang:
            await asyncio.sleep(3600)
        if self.discover_error is not None:
            raise self.discover_error
        return list(self.devices)

    async def _command(self, action: str, device_id: str) -> None:
        self.calls.append((action, device_id))
        if self.hang:
            await asyncio.sleep(3600)
        if device_id in self.failing:
            raise ProtocolError(f"{device_id} refused {action}")

    async def set_state(self, device_id: str, state: DeviceState) -> None:
        await self._command("set_state", device_id)
        self.states[device_id] = state

    async def get_state(self, device_id: str) -> DeviceState:
        await self._command("get_state", device_id)
        return self.states.get(device_id, DeviceState())

    async def turn_on(self, device_id: str) -> None:
        await self._command("turn_on", device_id)

    async def turn_off(self, device_id: str) -> None:
        await self._command("turn_off", device_id)

    async def close(self) -> None:
        self.closed = True


def make_device(brand: str, local_id: str, name: str = "", **kwargs) -> Device:
    return Device(
        id=DeviceID.build(brand, local_id),
        brand=Brand(brand),
        name=name or f"{brand} {local_id}",
        **kwargs,
    )


class FakeScanner:
    def __init__(self, manager: DeviceManager) -> None:
        self.manager = manager
        self.bridges = [DiscoveredBridge(address="10.0.0.2", name="Hue Bridge (4a1b2c)")]

    async def scan_all(self, timeout, on_progress=None) -> DiscoveryResult:
        if on_progress is not None:
            await on_progress(ScanProgress(phase="lights", message="Querying..."))
        found = await self.manager.discover_all(timeout)
        if on_progress is not None:
            await on_progress(ScanProgress(phase="done", message="Scan complete"))
        return DiscoveryResult(devices=found.devices, errors=found.errors, bridges=self.bridges)

    async def discover_hue_bridges(self) -> list[DiscoveredBridge]:
        return list(self.bridges)


def _provide(value):
    async def override():
        return value

    return override


@pytest.fixture
def fake_controller():
    """Factory for FakeController instances."""
    return FakeController


@pytest.fixture
def device_factory():
    return make_device


@pytest_asyncio.fixture
async def db():
    """Create an in-memory SQLite database with full schema."""
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await apply_migrations(conn)
    yield conn
    await conn.close()


@pytest.fixture
def store(db) -> HubStore:
    return HubStore(db)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def lifx() -> FakeController:
    return FakeController(
        Brand.LIFX,
        [make_device("lifx", "d073d5000001", "Desk"), make_device("lifx", "d073d5000002", "Shelf")],
    )


@pytest.fixture
def elgato() -> FakeController:
    return FakeController(Brand.ELGATO, [make_device("elgato", "10.0.0.40", "Key Light")])


@pytest.fixture
def manager(lifx, elgato) -> DeviceManager:
    mgr = DeviceManager(command_timeout=0.5)
    mgr.register_controller(lifx)
    mgr.register_controller(elgato)
    return mgr


@pytest.fixture
def scene_manager(store, manager) -> SceneManager:
    return SceneManager(store, manager, activation_timeout=1.0)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def camera() -> dict:
    """Mutable camera reading used by the monitor fixture's probe."""
    return {"in_use": False}


@pytest.fixture
def monitor(camera) -> SensorMonitor:
    return SensorMonitor(lambda: camera["in_use"], interval=1.0)


@pytest.fixture
def hue_bridge_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [], "errors": []})

    return httpx.MockTransport(handler)


@pytest.fixture
def hue(hue_bridge_transport) -> HueController:
    return HueController(request_timeout=1.0, transport=hue_bridge_transport)


@pytest.fixture
def app(settings, store, event_bus, manager, scene_manager, monitor, hue):
    """Create a FastAPI app with dependency overrides for testing."""
    from lightsync_hub.api import deps
    from lightsync_hub.app import create_app

    application = create_app(settings)
    scanner = FakeScanner(manager)

    values = {
        deps.get_config: settings,
        deps.get_store: store,
        deps.get_event_bus: event_bus,
        deps.get_device_manager: manager,
        deps.get_scene_manager: scene_manager,
        deps.get_scanner: scanner,
        deps.get_monitor: monitor,
        deps.get_hue_controller: hue,
    }
    for dep, value in values.items():
        application.dependency_overrides[dep] = _provide(value)

    return application


@pytest_asyncio.fixture
async def http(app):
    """Async client bound to the app on the test's own event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://hub") as ac:
        yield ac
