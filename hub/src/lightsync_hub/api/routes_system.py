"""System routes: health and a status snapshot of the running hub."""
from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from lightsync_hub import __version__
from lightsync_hub.api.deps import (
    get_config,
    get_device_manager,
    get_monitor,
    get_scene_manager,
)
from lightsync_hub.config import Settings
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.scenes.manager import SceneManager
from lightsync_hub.sensors.monitor import SensorMonitor

router = APIRouter(prefix="/system", tags=["system"])


# ---------- Request/Response models ----------

class HealthResponse(BaseModel):
    version: str
    name: str
    uptime_seconds: float


class StatusResponse(BaseModel):
    devices: dict[str, Any]
    scenes: dict[str, Any]
    monitor: dict[str, Any]


# ---------- Routes ----------

@router.get("/health", response_model=HealthResponse)
async def health(request: Request, config: Settings = Depends(get_config)):
    start_time = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        version=__version__,
        name=config.hub.name,
        uptime_seconds=round(time.time() - start_time, 2),
    )


@router.get("/status", response_model=StatusResponse)
async def status(
    manager: DeviceManager = Depends(get_device_manager),
    scenes: SceneManager = Depends(get_scene_manager),
    monitor: SensorMonitor = Depends(get_monitor),
):
    return StatusResponse(
        devices=manager.snapshot(),
        scenes=scenes.snapshot(),
        monitor=monitor.snapshot(),
    )
