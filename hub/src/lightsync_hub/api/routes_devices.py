"""Device routes: list, state read/write, power, room assignment, removal."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from lightsync_hub.api.deps import get_device_manager, get_store
from lightsync_hub.db.store import HubStore
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import Device, DeviceState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["devices"])


# ---------- Request/Response models ----------

class RoomUpdateRequest(BaseModel):
    room: Optional[str] = None


class DeviceListResponse(BaseModel):
    items: list[Device]
    total: int


async def _persist(store: HubStore, manager: DeviceManager) -> None:
    await store.set_devices(manager.get_devices())


# ---------- Routes ----------

@router.get("", response_model=DeviceListResponse)
async def list_devices(
    manager: DeviceManager = Depends(get_device_manager),
) -> DeviceListResponse:
    devices = manager.get_devices()
    return DeviceListResponse(items=devices, total=len(devices))


@router.get("/{device_id}", response_model=Device)
async def get_device(
    device_id: str,
    manager: DeviceManager = Depends(get_device_manager),
) -> Device:
    return manager.get_device(device_id)


@router.get("/{device_id}/state", response_model=DeviceState)
async def get_device_state(
    device_id: str,
    manager: DeviceManager = Depends(get_device_manager),
) -> DeviceState:
    return await manager.get_device_state(device_id)


@router.put("/{device_id}/state", status_code=204)
async def set_device_state(
    device_id: str,
    body: DeviceState,
    manager: DeviceManager = Depends(get_device_manager),
) -> Response:
    await manager.set_device_state(device_id, body)
    return Response(status_code=204)


@router.post("/{device_id}/on", status_code=204)
async def turn_on(
    device_id: str,
    manager: DeviceManager = Depends(get_device_manager),
) -> Response:
    await manager.turn_on(device_id)
    return Response(status_code=204)


@router.post("/{device_id}/off", status_code=204)
async def turn_off(
    device_id: str,
    manager: DeviceManager = Depends(get_device_manager),
) -> Response:
    await manager.turn_off(device_id)
    return Response(status_code=204)


@router.put("/{device_id}/room", response_model=Device)
async def set_device_room(
    device_id: str,
    body: RoomUpdateRequest,
    manager: DeviceManager = Depends(get_device_manager),
    store: HubStore = Depends(get_store),
) -> Device:
    device = await manager.set_device_room(device_id, body.room)
    await _persist(store, manager)
    logger.info("Device %s moved to room %r", device_id, device.room)
    return device


@router.delete("/{device_id}", status_code=204)
async def remove_device(
    device_id: str,
    manager: DeviceManager = Depends(get_device_manager),
    store: HubStore = Depends(get_store),
) -> Response:
    await manager.remove_device(device_id)
    await _persist(store, manager)
    return Response(status_code=204)
