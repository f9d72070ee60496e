"""LightSync Hub -- entry point.

Usage::

    python -m lightsync_hub [--config PATH] [--host HOST] [--port PORT]

Startup sequence:
    1. Parse CLI arguments
    2. Load configuration from YAML (or defaults)
    3. Open SQLite database and run migrations
    4. Initialise the event bus and the four brand controllers
    5. Re-register paired Hue bridges and restore persisted devices
    6. Initialise the discovery scanner, scene manager and sensor monitor
    7. Create the FastAPI application with dependency injection
    8. Start the monitor and the uvicorn server
    9. On shutdown signal: stop the monitor, close controllers, close database
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import aiosqlite
import uvicorn

from lightsync_hub.app import create_app
from lightsync_hub.config import Settings, load_settings
from lightsync_hub.db.migrations import apply_migrations
from lightsync_hub.db.store import HubStore
from lightsync_hub.discovery.mdns_browser import MDNSBrowser
from lightsync_hub.discovery.scanner import DiscoveryScanner
from lightsync_hub.discovery.ssdp import HueSSDPScanner
from lightsync_hub.discovery.subnet import SubnetProber
from lightsync_hub.events.bus import EventBus
from lightsync_hub.events.types import EventType
from lightsync_hub.lights.elgato import ElgatoController
from lightsync_hub.lights.govee import GoveeController, GoveeListener
from lightsync_hub.lights.hue import HueController
from lightsync_hub.lights.lifx import LifxController
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import Brand, Scene
from lightsync_hub.scenes.manager import SceneManager
from lightsync_hub.sensors.camera import default_probe
from lightsync_hub.sensors.monitor import SensorMonitor, poll_interval_seconds

logger = logging.getLogger("lightsync_hub")


# ---------------------------------------------------------------------------
# Integration seams
# ---------------------------------------------------------------------------


async def open_db(db_path: Path) -> aiosqlite.Connection:
    """Open the SQLite database, creating its directory if needed."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    db.row_factory = aiosqlite.Row
    return db


def create_device_manager(settings: Settings) -> tuple[DeviceManager, HueController, ElgatoController]:
    """Build the device manager with every brand controller registered."""
    lights = settings.lights
    manager = DeviceManager(command_timeout=lights.command_timeout)
    hue = HueController(request_timeout=lights.command_timeout)
    elgato = ElgatoController(
        request_timeout=lights.command_timeout,
        min_brightness=lights.elgato_min_brightness,
        reconnect_attempts=lights.reconnect_attempts,
    )
    manager.register_controller(
        LifxController(
            discovery_window=lights.lifx_discovery_timeout,
            reconnect_attempts=lights.reconnect_attempts,
        )
    )
    manager.register_controller(hue)
    manager.register_controller(elgato)
    manager.register_controller(
        GoveeController(
            listener=GoveeListener(scan_interval=lights.govee_scan_interval),
            settle_seconds=lights.govee_settle_seconds,
        )
    )
    return manager, hue, elgato


def create_scanner(
    settings: Settings, manager: DeviceManager, elgato: ElgatoController
) -> DiscoveryScanner:
    discovery = settings.discovery
    return DiscoveryScanner(
        manager=manager,
        elgato=elgato,
        mdns_browser=MDNSBrowser(browse_timeout=discovery.mdns_timeout),
        ssdp_scanner=HueSSDPScanner(collect_timeout=discovery.ssdp_timeout),
        elgato_prober=SubnetProber(
            max_concurrent=discovery.elgato_probe_concurrency,
            timeout_per_host=discovery.elgato_probe_timeout,
        ),
        bridge_prober=SubnetProber(
            max_concurrent=discovery.bridge_probe_concurrency,
            timeout_per_host=discovery.bridge_probe_timeout,
        ),
        subnet=discovery.subnet,
        cloud_timeout=discovery.cloud_timeout,
    )


async def restore_state(
    store: HubStore,
    manager: DeviceManager,
    hue: HueController,
    elgato: ElgatoController,
    hue_timeout: float,
) -> None:
    """Reconnect paired bridges and seed the registry from storage.

    Hue lights are queried once so their bridge mappings exist before the
    first command arrives; a slow bridge only delays startup by *hue_timeout*.
    """
    for credential in await store.get_credentials():
        if credential.brand == Brand.HUE:
            await hue.add_bridge(credential.address, credential.token)

    if hue.bridges():
        try:
            async with asyncio.timeout(hue_timeout):
                await hue.discover(hue_timeout)
        except Exception as exc:
            logger.warning("Initial Hue discovery failed: %s", exc)

    devices = await store.get_devices()
    for device in devices:
        if device.brand == Brand.ELGATO and device.last_ip:
            elgato.add_device(device.last_ip)
    await manager.restore(devices)


def publish_scene_activated(event_bus: EventBus) -> Callable[[Scene], Awaitable[None]]:
    """Build the scene manager's activation hook.

    Subscribers get the whole Scene record before any device is commanded.
    """

    async def _on_activated(scene: Scene) -> None:
        await event_bus.publish(
            EventType.SCENE_ACTIVATED, scene.model_dump(mode="json"), source_id=scene.id
        )

    return _on_activated


def _provide(value: Any) -> Any:
    async def _dep() -> Any:
        return value

    return _dep


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="lightsync_hub",
        description="LightSync Hub LAN lighting controller",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Bind address for the API server (default: from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API server (default: from config)",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main run coroutine
# ---------------------------------------------------------------------------


async def run_hub(
    config_path: str | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Start the hub and run until cancelled."""
    # 1. Load config
    settings = load_settings(config_path=Path(config_path) if config_path else None)
    host = host or settings.api.host
    port = port or settings.api.port

    # 2. Open database
    db = await open_db(Path(settings.hub.data_dir) / "lightsync.db")
    await apply_migrations(db)
    store = HubStore(db)

    # 3. Event bus and controllers
    event_bus = EventBus()
    manager, hue, elgato = create_device_manager(settings)

    # 4. Restore persisted state
    await restore_state(store, manager, hue, elgato, settings.lights.hue_startup_timeout)

    # 5. Scanner, scenes, monitor
    scanner = create_scanner(settings, manager, elgato)

    scene_manager = SceneManager(
        store,
        manager,
        activation_timeout=settings.scenes.activation_timeout,
        on_activated=publish_scene_activated(event_bus),
    )

    user_settings = await store.get_settings()
    monitor = SensorMonitor(
        default_probe(),
        interval=poll_interval_seconds(
            user_settings.poll_interval_ms,
            settings.monitor.min_interval_ms,
            settings.monitor.fallback_interval_ms,
        ),
    )
    monitor.set_enabled(settings.monitor.enabled)

    async def _on_sensor_change(value: bool) -> None:
        await event_bus.publish(EventType.SENSOR_CHANGED, {"value": value})
        await scene_manager.on_sensor_change(value)

    monitor.on_change(_on_sensor_change)

    # 6. Create FastAPI app and wire dependencies
    app = create_app(settings)

    from lightsync_hub.api import deps

    overrides: dict[Any, Any] = {
        deps.get_config: settings,
        deps.get_store: store,
        deps.get_event_bus: event_bus,
        deps.get_device_manager: manager,
        deps.get_scene_manager: scene_manager,
        deps.get_scanner: scanner,
        deps.get_monitor: monitor,
        deps.get_hue_controller: hue,
    }
    for dep, value in overrides.items():
        app.dependency_overrides[dep] = _provide(value)

    # 7. Live WebSocket relay from the event bus
    from lightsync_hub.api.ws import relay_bus_event

    event_bus.subscribe(["*"], relay_bus_event)

    # 8. Start monitor and server
    monitor.start()

    uvicorn_config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvicorn_config)

    try:
        await server.serve()
    except asyncio.CancelledError:
        logger.info("Shutdown signal received -- stopping hub")
    finally:
        logger.info("Stopping sensor monitor...")
        await monitor.stop()

        logger.info("Closing light controllers...")
        await manager.close()

        logger.info("Closing database...")
        await db.close()

        logger.info("Hub shutdown complete")


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI args and run the hub."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args = parse_args()

    try:
        asyncio.run(run_hub(config_path=args.config, host=args.host, port=args.port))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
