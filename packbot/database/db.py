from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    full_name   TEXT,
    location    TEXT,
    thread_id   TEXT,
    preferences TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS gear_items (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name         TEXT NOT NULL,
    category     TEXT NOT NULL DEFAULT 'Other',
    weight_grams INTEGER,
    temp_rating  INTEGER,
    condition    TEXT NOT NULL DEFAULT 'good',
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_gear_items_user ON gear_items(user_id, category);

CREATE TABLE IF NOT EXISTS trips (
    id             TEXT PRIMARY KEY,
    organizer_id   TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name           TEXT NOT NULL,
    location       TEXT NOT NULL DEFAULT '',
    start_date     TEXT NOT NULL,
    end_date       TEXT NOT NULL,
    type           TEXT NOT NULL CHECK (type IN ('DAY_HIKE', 'OVERNIGHT', 'MULTI_DAY', 'THRU_HIKE', 'OTHER')),
    difficulty     TEXT NOT NULL CHECK (difficulty IN ('EASY', 'MODERATE', 'HARD', 'EXTREME')),
    distance       REAL,
    elevation_gain REAL,
    description    TEXT NOT NULL DEFAULT '',
    external_url   TEXT,
    latitude       REAL,
    longitude      REAL,
    created_at     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS trip_participants (
    trip_id TEXT NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    role    TEXT NOT NULL DEFAULT 'MEMBER',
    status  TEXT NOT NULL DEFAULT 'PENDING',
    PRIMARY KEY (trip_id, user_id)
);

CREATE TABLE IF NOT EXISTS trip_gear (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    trip_id       TEXT NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
    gear_id       TEXT NOT NULL REFERENCES gear_items(id) ON DELETE CASCADE,
    quantity      INTEGER NOT NULL DEFAULT 1,
    is_shared     INTEGER NOT NULL DEFAULT 0,
    carried_by_id TEXT REFERENCES users(id),
    is_packed     INTEGER NOT NULL DEFAULT 0,
    UNIQUE (trip_id, gear_id)
);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    conn = await aiosqlite.connect(db_path)
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA synchronous=NORMAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(SCHEMA)
    await conn.commit()
    logger.info("Database initialized at %s", db_path)
    return conn
