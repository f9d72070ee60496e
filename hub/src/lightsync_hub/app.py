"""FastAPI application factory for LightSync Hub."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lightsync_hub import __version__
from lightsync_hub.api.routes_devices import router as devices_router
from lightsync_hub.api.routes_discovery import router as discovery_router
from lightsync_hub.api.routes_pairing import router as pairing_router
from lightsync_hub.api.routes_scenes import router as scenes_router
from lightsync_hub.api.routes_settings import router as settings_router
from lightsync_hub.api.routes_system import router as system_router
from lightsync_hub.api.ws import router as ws_router
from lightsync_hub.config import Settings
from lightsync_hub.errors import (
    ConflictError,
    NotFoundError,
    PairingError,
    ProtocolError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ---------- Error mapping ----------

async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _pairing_failed(request: Request, exc: PairingError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc), "reason": exc.reason})


async def _protocol(request: Request, exc: ProtocolError) -> JSONResponse:
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_app(settings: Settings) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Loaded hub settings; exposed on ``app.state`` for routes that read it
        outside dependency injection.
    """
    start_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.start_time = start_time
        app.state.settings = settings
        yield

    app = FastAPI(
        title=settings.hub.name,
        version=__version__,
        lifespan=lifespan,
    )

    app.state.start_time = start_time
    app.state.settings = settings

    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(ValidationError, _invalid)
    app.add_exception_handler(PairingError, _pairing_failed)
    app.add_exception_handler(ProtocolError, _protocol)

    app.include_router(system_router)
    app.include_router(devices_router)
    app.include_router(discovery_router)
    app.include_router(scenes_router)
    app.include_router(settings_router)
    app.include_router(pairing_router)
    app.include_router(ws_router)

    return app
