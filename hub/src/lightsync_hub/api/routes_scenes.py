"""Scene routes: CRUD, active scene, manual activation."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from lightsync_hub.api.deps import get_scene_manager
from lightsync_hub.models import Color, DeviceState, Scene, SceneTrigger
from lightsync_hub.scenes.manager import SceneManager

router = APIRouter(prefix="/scenes", tags=["scenes"])


# ---------- Request/Response models ----------

class SceneRequest(BaseModel):
    name: str
    trigger: Optional[SceneTrigger] = None
    devices: dict[str, DeviceState] = Field(default_factory=dict)
    global_color: Optional[Color] = None
    global_kelvin: Optional[int] = None


class ActiveSceneResponse(BaseModel):
    scene_id: Optional[str] = None


# ---------- Routes ----------

@router.get("", response_model=list[Scene])
async def list_scenes(
    scenes: SceneManager = Depends(get_scene_manager),
) -> list[Scene]:
    return await scenes.get_scenes()


@router.get("/active", response_model=ActiveSceneResponse)
async def get_active_scene(
    scenes: SceneManager = Depends(get_scene_manager),
) -> ActiveSceneResponse:
    return ActiveSceneResponse(scene_id=scenes.get_active_scene())


@router.get("/{scene_id}", response_model=Scene)
async def get_scene(
    scene_id: str,
    scenes: SceneManager = Depends(get_scene_manager),
) -> Scene:
    return await scenes.get_scene(scene_id)


@router.post("", response_model=Scene, status_code=201)
async def create_scene(
    body: SceneRequest,
    scenes: SceneManager = Depends(get_scene_manager),
) -> Scene:
    return await scenes.create_scene(
        name=body.name,
        trigger=body.trigger,
        devices=body.devices,
        global_color=body.global_color,
        global_kelvin=body.global_kelvin,
    )


@router.put("/{scene_id}", response_model=Scene)
async def update_scene(
    scene_id: str,
    body: SceneRequest,
    scenes: SceneManager = Depends(get_scene_manager),
) -> Scene:
    scene = Scene(id=scene_id, **body.model_dump())
    return await scenes.update_scene(scene)


@router.delete("/{scene_id}", status_code=204)
async def delete_scene(
    scene_id: str,
    scenes: SceneManager = Depends(get_scene_manager),
) -> Response:
    await scenes.delete_scene(scene_id)
    return Response(status_code=204)


@router.post("/{scene_id}/activate", response_model=Scene)
async def activate_scene(
    scene_id: str,
    scenes: SceneManager = Depends(get_scene_manager),
) -> Scene:
    return await scenes.activate_scene(scene_id)
