"""Integration tests for the schema, migrations and the JSON-record store."""

from __future__ import annotations

import sqlite3

import aiosqlite
import pytest

from lightsync_hub.db.migrations import apply_migrations, get_current_version
from lightsync_hub.db import schema
from lightsync_hub.db.schema import SCHEMA_VERSION, get_all_table_names
from lightsync_hub.db.store import HubStore
from lightsync_hub.models import Brand, Credential, Device, Scene, SceneTrigger, UserSettings


class TestMigrations:
    async def test_fresh_database_is_version_zero(self) -> None:
        async with aiosqlite.connect(":memory:") as conn:
            assert await get_current_version(conn) == 0

    async def test_creates_every_table(self, db) -> None:
        cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table'")
        names = {row[0] for row in await cursor.fetchall()}
        assert set(get_all_table_names()) <= names
        assert await get_current_version(db) == SCHEMA_VERSION

    async def test_idempotent(self, db) -> None:
        await apply_migrations(db)
        cursor = await db.execute("SELECT COUNT(*) FROM schema_version")
        assert (await cursor.fetchone())[0] == 1

    def test_schema_is_applied_only_through_migrations(self) -> None:
        assert not hasattr(schema, "create_all_tables")


class TestDevices:
    async def test_set_replaces_all(self, store: HubStore) -> None:
        await store.set_devices([Device(id="hue:1", brand=Brand.HUE), Device(id="hue:2", brand=Brand.HUE)])
        await store.set_devices([Device(id="lifx:a", brand=Brand.LIFX, room="Office")])
        devices = await store.get_devices()
        assert [d.id for d in devices] == ["lifx:a"]
        assert devices[0].room == "Office"

    async def test_unreadable_record_is_skipped(self, db, store: HubStore) -> None:
        await store.set_devices([Device(id="hue:1", brand=Brand.HUE)])
        await db.execute(
            "INSERT INTO devices (id, payload, updated_at) VALUES (?, ?, ?)",
            ("bad:1", '{"id": "bad:1", "brand": "nanoleaf"}', "2026-01-01T00:00:00Z"),
        )
        await db.commit()
        assert [d.id for d in await store.get_devices()] == ["hue:1"]

    async def test_records_missing_fields_load_with_defaults(self, db, store: HubStore) -> None:
        await db.execute(
            "INSERT INTO devices (id, payload, updated_at) VALUES (?, ?, ?)",
            ("lifx:old", '{"id": "lifx:old", "brand": "lifx"}', "2026-01-01T00:00:00Z"),
        )
        await db.commit()
        (device,) = await store.get_devices()
        assert device.room is None
        assert device.min_kelvin == 0


class TestScenes:
    async def test_upsert_inserts_then_updates_in_place(self, store: HubStore) -> None:
        first = Scene(name="First")
        second = Scene(name="Second", trigger=SceneTrigger.CAMERA_OFF)
        await store.upsert_scene(first)
        await store.upsert_scene(second)
        await store.upsert_scene(first.model_copy(update={"name": "First renamed"}))
        scenes = await store.get_scenes()
        assert [s.name for s in scenes] == ["First renamed", "Second"]

    async def test_delete(self, store: HubStore) -> None:
        scene = Scene(name="x")
        await store.upsert_scene(scene)
        assert await store.delete_scene(scene.id) is True
        assert await store.delete_scene(scene.id) is False
        assert await store.get_scenes() == []

    async def test_set_scenes_replaces(self, store: HubStore) -> None:
        await store.upsert_scene(Scene(name="old"))
        await store.set_scenes([Scene(name="a"), Scene(name="b")])
        assert [s.name for s in await store.get_scenes()] == ["a", "b"]


class TestCredentialsAndSettings:
    async def test_credentials_round_trip(self, store: HubStore) -> None:
        cred = Credential(address="10.0.0.2", token="tok")
        await store.set_credentials([cred])
        assert await store.get_credentials() == [cred]

    async def test_duplicate_address_rejected(self, store: HubStore) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            await store.set_credentials(
                [Credential(address="10.0.0.2", token="a"), Credential(address="10.0.0.2", token="b")]
            )

    async def test_settings_default_when_absent(self, store: HubStore) -> None:
        assert await store.get_settings() == UserSettings()

    async def test_settings_upsert(self, store: HubStore) -> None:
        await store.set_settings(UserSettings(poll_interval_ms=750))
        await store.set_settings(UserSettings(poll_interval_ms=2000, launch_at_login=True))
        settings = await store.get_settings()
        assert settings.poll_interval_ms == 2000
        assert settings.launch_at_login is True
