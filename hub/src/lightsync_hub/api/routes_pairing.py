"""Bridge pairing routes: link-button pairing, list and forget bridges."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from lightsync_hub.api.deps import get_hue_controller, get_store
from lightsync_hub.db.store import HubStore
from lightsync_hub.errors import NotFoundError
from lightsync_hub.lights.hue import HueController, pair_bridge
from lightsync_hub.models import Brand, Credential

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bridges", tags=["pairing"])


# ---------- Request/Response models ----------

class PairRequest(BaseModel):
    address: str


class PairResponse(BaseModel):
    address: str
    paired: bool = True


class BridgeListResponse(BaseModel):
    bridges: list[str]


# ---------- Routes ----------

@router.get("", response_model=BridgeListResponse)
async def list_bridges(
    hue: HueController = Depends(get_hue_controller),
) -> BridgeListResponse:
    return BridgeListResponse(bridges=hue.bridges())


@router.post("/pair", response_model=PairResponse)
async def pair(
    body: PairRequest,
    hue: HueController = Depends(get_hue_controller),
    store: HubStore = Depends(get_store),
) -> PairResponse:
    """Pair with a bridge whose link button was just pressed.

    The returned token is stored, replacing any earlier credential for the
    same address, and the bridge is registered with the Hue controller.
    Pairing failures surface as 502 responses carrying a ``reason``.
    """
    token = await pair_bridge(body.address)

    credentials = [c for c in await store.get_credentials() if c.address != body.address]
    credentials.append(Credential(brand=Brand.HUE, address=body.address, token=token))
    await store.set_credentials(credentials)

    await hue.add_bridge(body.address, token)
    return PairResponse(address=body.address)


@router.delete("/{address}", status_code=204)
async def forget_bridge(
    address: str,
    hue: HueController = Depends(get_hue_controller),
    store: HubStore = Depends(get_store),
) -> Response:
    credentials = await store.get_credentials()
    remaining = [c for c in credentials if c.address != address]
    if len(remaining) == len(credentials) and address not in hue.bridges():
        raise NotFoundError(f"bridge {address} not paired")
    await store.set_credentials(remaining)
    if address in hue.bridges():
        await hue.remove_bridge(address)
    logger.info("Forgot Hue bridge %s", address)
    return Response(status_code=204)
