"""SQLite schema definitions for LightSync Hub.

Every record is stored as the JSON document produced by its pydantic model;
the columns beside the payload exist only for keys and ordering.
"""

from __future__ import annotations

# Current schema version -- increment when adding migrations
SCHEMA_VERSION = 1

_TABLE_NAMES: list[str] = [
    "devices",
    "scenes",
    "credentials",
    "settings",
    "schema_version",
]


def get_all_table_names() -> list[str]:
    """Return the list of all table names managed by this schema."""
    return list(_TABLE_NAMES)


# ---------------------------------------------------------------------------
# SQL statements for schema version 1
# ---------------------------------------------------------------------------

SCHEMA_V1_SQL = """
-- Known devices keyed by brand:local_id
CREATE TABLE IF NOT EXISTS devices (
    id          TEXT PRIMARY KEY,
    payload     TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- Scenes; seq keeps insertion order so the first trigger match is stable
CREATE TABLE IF NOT EXISTS scenes (
    seq         INTEGER PRIMARY KEY AUTOINCREMENT,
    id          TEXT NOT NULL UNIQUE,
    payload     TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- Paired bridge credentials
CREATE TABLE IF NOT EXISTS credentials (
    id          TEXT PRIMARY KEY,
    address     TEXT NOT NULL UNIQUE,
    payload     TEXT NOT NULL
);

-- Single-document settings records
CREATE TABLE IF NOT EXISTS settings (
    key         TEXT PRIMARY KEY,
    payload     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER PRIMARY KEY,
    applied_at  TEXT NOT NULL
);
"""
