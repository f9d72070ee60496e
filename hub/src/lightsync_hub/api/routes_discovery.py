"""Discovery routes: full multi-phase scan and Hue bridge search."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from lightsync_hub.api.deps import (
    get_config,
    get_device_manager,
    get_event_bus,
    get_scanner,
    get_store,
)
from lightsync_hub.config import Settings
from lightsync_hub.db.store import HubStore
from lightsync_hub.discovery.scanner import DiscoveryScanner
from lightsync_hub.events.bus import EventBus
from lightsync_hub.events.types import EventType
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import DiscoveredBridge, DiscoveryResult, ScanProgress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discovery", tags=["discovery"])


@router.post("/scan", response_model=DiscoveryResult)
async def scan(
    config: Settings = Depends(get_config),
    scanner: DiscoveryScanner = Depends(get_scanner),
    manager: DeviceManager = Depends(get_device_manager),
    store: HubStore = Depends(get_store),
    event_bus: EventBus = Depends(get_event_bus),
) -> DiscoveryResult:
    """Run every discovery phase, streaming progress over the event bus."""

    async def on_progress(progress: ScanProgress) -> None:
        await event_bus.publish(EventType.SCAN_PROGRESS, progress.model_dump(mode="json"))

    result = await scanner.scan_all(config.discovery.scan_timeout, on_progress)
    await store.set_devices(manager.get_devices())
    logger.info(
        "Scan finished: %d device(s), %d error(s), %d bridge(s)",
        len(result.devices), len(result.errors), len(result.bridges),
    )
    return result


@router.post("/hue-bridges", response_model=list[DiscoveredBridge])
async def discover_hue_bridges(
    scanner: DiscoveryScanner = Depends(get_scanner),
) -> list[DiscoveredBridge]:
    return await scanner.discover_hue_bridges()
