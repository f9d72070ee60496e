"""JSON-record store over aiosqlite.

The store hands out and accepts full copies only; callers that need
read-modify-write ordering serialize it themselves. Records that no longer
validate are logged and skipped instead of failing the whole load.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, TypeVar

import aiosqlite
import pydantic

from lightsync_hub.models import Credential, Device, Scene, UserSettings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)

_USER_SETTINGS_KEY = "user"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load(model: type[M], rows: list[Any]) -> list[M]:
    records: list[M] = []
    for row in rows:
        try:
            records.append(model.model_validate_json(row[0]))
        except pydantic.ValidationError:
            logger.warning("Skipping unreadable %s record", model.__name__, exc_info=True)
    return records


class HubStore:
    """Persistence for devices, scenes, credentials and user settings.

    Parameters
    ----------
    db:
        Open connection with migrations already applied.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[Any]:
        cursor = await self._db.execute(sql, params)
        return list(await cursor.fetchall())

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def get_devices(self) -> list[Device]:
        rows = await self._fetchall("SELECT payload FROM devices ORDER BY id")
        return _load(Device, rows)

    async def set_devices(self, devices: list[Device]) -> None:
        now = _now()
        await self._db.execute("DELETE FROM devices")
        await self._db.executemany(
            "INSERT INTO devices (id, payload, updated_at) VALUES (?, ?, ?)",
            [(d.id, d.model_dump_json(), now) for d in devices],
        )
        await self._db.commit()

    # ------------------------------------------------------------------
    # Scenes
    # ------------------------------------------------------------------

    async def get_scenes(self) -> list[Scene]:
        rows = await self._fetchall("SELECT payload FROM scenes ORDER BY seq")
        return _load(Scene, rows)

    async def set_scenes(self, scenes: list[Scene]) -> None:
        now = _now()
        await self._db.execute("DELETE FROM scenes")
        await self._db.executemany(
            "INSERT INTO scenes (id, payload, updated_at) VALUES (?, ?, ?)",
            [(s.id, s.model_dump_json(), now) for s in scenes],
        )
        await self._db.commit()

    async def upsert_scene(self, scene: Scene) -> None:
        """Insert a new scene or replace an existing one in place."""
        await self._db.execute(
            """INSERT INTO scenes (id, payload, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   payload = excluded.payload,
                   updated_at = excluded.updated_at""",
            (scene.id, scene.model_dump_json(), _now()),
        )
        await self._db.commit()

    async def delete_scene(self, scene_id: str) -> bool:
        cursor = await self._db.execute("DELETE FROM scenes WHERE id = ?", (scene_id,))
        await self._db.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def get_credentials(self) -> list[Credential]:
        rows = await self._fetchall("SELECT payload FROM credentials ORDER BY address")
        return _load(Credential, rows)

    async def set_credentials(self, credentials: list[Credential]) -> None:
        await self._db.execute("DELETE FROM credentials")
        await self._db.executemany(
            "INSERT INTO credentials (id, address, payload) VALUES (?, ?, ?)",
            [(c.id, c.address, c.model_dump_json()) for c in credentials],
        )
        await self._db.commit()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> UserSettings:
        rows = await self._fetchall(
            "SELECT payload FROM settings WHERE key = ?", (_USER_SETTINGS_KEY,)
        )
        loaded = _load(UserSettings, rows)
        return loaded[0] if loaded else UserSettings()

    async def set_settings(self, settings: UserSettings) -> None:
        await self._db.execute(
            """INSERT INTO settings (key, payload) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE SET payload = excluded.payload""",
            (_USER_SETTINGS_KEY, settings.model_dump_json()),
        )
        await self._db.commit()
