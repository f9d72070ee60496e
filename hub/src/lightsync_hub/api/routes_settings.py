"""Settings and sensor-monitor routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lightsync_hub.api.deps import get_config, get_event_bus, get_monitor, get_store
from lightsync_hub.config import Settings
from lightsync_hub.db.store import HubStore
from lightsync_hub.events.bus import EventBus
from lightsync_hub.events.types import EventType
from lightsync_hub.models import UserSettings
from lightsync_hub.sensors.monitor import SensorMonitor, poll_interval_seconds

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings"])


# ---------- Request/Response models ----------

class MonitorStatus(BaseModel):
    value: bool
    enabled: bool
    interval_ms: int
    running: bool


class MonitorEnabledRequest(BaseModel):
    enabled: bool


class CheckNowResponse(BaseModel):
    value: bool


# ---------- Settings ----------

@router.get("/settings", response_model=UserSettings)
async def get_settings(store: HubStore = Depends(get_store)) -> UserSettings:
    return await store.get_settings()


@router.put("/settings", response_model=UserSettings)
async def put_settings(
    body: UserSettings,
    store: HubStore = Depends(get_store),
    monitor: SensorMonitor = Depends(get_monitor),
    config: Settings = Depends(get_config),
) -> UserSettings:
    """Persist user settings and apply the poll interval to the live monitor."""
    await store.set_settings(body)
    monitor.set_interval(
        poll_interval_seconds(
            body.poll_interval_ms,
            config.monitor.min_interval_ms,
            config.monitor.fallback_interval_ms,
        )
    )
    return body


# ---------- Monitor ----------

@router.get("/monitor", response_model=MonitorStatus)
async def get_monitor_status(
    monitor: SensorMonitor = Depends(get_monitor),
) -> MonitorStatus:
    return MonitorStatus(**monitor.snapshot())


@router.put("/monitor/enabled", response_model=MonitorStatus)
async def set_monitor_enabled(
    body: MonitorEnabledRequest,
    monitor: SensorMonitor = Depends(get_monitor),
    event_bus: EventBus = Depends(get_event_bus),
) -> MonitorStatus:
    monitor.set_enabled(body.enabled)
    await event_bus.publish(EventType.MONITORING_CHANGED, {"enabled": body.enabled})
    return MonitorStatus(**monitor.snapshot())


@router.post("/monitor/check", response_model=CheckNowResponse)
async def check_now(monitor: SensorMonitor = Depends(get_monitor)) -> CheckNowResponse:
    """Probe the sensor immediately; scene triggers are not fired."""
    return CheckNowResponse(value=await monitor.check_now())
