from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import aiosqlite

from packbot.models import GearItem, Trip, User
from packbot.preferences.store import create_default_store

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, full_name, location, thread_id, preferences, created_at"
_GEAR_COLUMNS = "id, user_id, name, category, weight_grams, temp_rating, condition, created_at"
_TRIP_COLUMNS = (
    "id, organizer_id, name, location, start_date, end_date, type, difficulty, distance, "
    "elevation_gain, description, external_url, latitude, longitude, created_at"
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _load_document(user_id: str, raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Stored preferences for user %s are not valid JSON", user_id)
        return None


def _row_to_user(row: aiosqlite.Row | tuple) -> User:
    return User(
        id=row[0],
        full_name=row[1],
        location=row[2],
        thread_id=row[3],
        preferences=_load_document(row[0], row[4]),
        created_at=row[5],
    )


def _row_to_gear(row: aiosqlite.Row | tuple) -> GearItem:
    return GearItem(
        id=row[0],
        user_id=row[1],
        name=row[2],
        category=row[3],
        weight_grams=row[4],
        temp_rating=row[5],
        condition=row[6],
        created_at=row[7],
    )


def _row_to_trip(row: aiosqlite.Row | tuple) -> Trip:
    return Trip(
        id=row[0],
        organizer_id=row[1],
        name=row[2],
        location=row[3],
        start_date=row[4],
        end_date=row[5],
        type=row[6],
        difficulty=row[7],
        distance=row[8],
        elevation_gain=row[9],
        description=row[10],
        external_url=row[11],
        latitude=row[12],
        longitude=row[13],
        created_at=row[14],
    )


class Repository:
    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    # --- Users ---

    async def create_user(
        self,
        user_id: str | None = None,
        full_name: str | None = None,
        location: str | None = None,
    ) -> User:
        """Insert a user with a fully populated default preference document."""
        user_id = user_id or _new_id()
        document = create_default_store().to_document()
        cursor = await self._conn.execute(
            "INSERT INTO users (id, full_name, location, preferences) VALUES (?, ?, ?, ?) "
            f"RETURNING {_USER_COLUMNS}",
            (user_id, full_name, location, json.dumps(document, ensure_ascii=False)),
        )
        row = await cursor.fetchone()
        await self._conn.commit()
        return _row_to_user(row)

    async def get_user(self, user_id: str) -> User | None:
        cursor = await self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def save_preferences(self, user_id: str, document: dict[str, Any]) -> None:
        await self._conn.execute(
            "UPDATE users SET preferences = ?, updated_at = datetime('now') WHERE id = ?",
            (json.dumps(document, ensure_ascii=False), user_id),
        )
        await self._conn.commit()

    async def set_thread_id(self, user_id: str, thread_id: str) -> None:
        await self._conn.execute(
            "UPDATE users SET thread_id = ?, updated_at = datetime('now') WHERE id = ?",
            (thread_id, user_id),
        )
        await self._conn.commit()

    async def ping(self) -> bool:
        try:
            await self._conn.execute("SELECT 1")
            return True
        except (aiosqlite.Error, ValueError):
            return False

    async def clear_thread_ids(self, user_id: str | None = None) -> int:
        """Drop durable thread references (one user, or everyone). Returns rows changed."""
        if user_id is None:
            cursor = await self._conn.execute(
                "UPDATE users SET thread_id = NULL, updated_at = datetime('now') "
                "WHERE thread_id IS NOT NULL",
            )
        else:
            cursor = await self._conn.execute(
                "UPDATE users SET thread_id = NULL, updated_at = datetime('now') "
                "WHERE id = ? AND thread_id IS NOT NULL",
                (user_id,),
            )
        await self._conn.commit()
        return cursor.rowcount

    # --- Gear ---

    async def add_gear(
        self,
        user_id: str,
        name: str,
        category: str = "Other",
        weight_grams: int | None = None,
        temp_rating: int | None = None,
        condition: str = "good",
    ) -> GearItem:
        gear_id = _new_id()
        cursor = await self._conn.execute(
            "INSERT INTO gear_items (id, user_id, name, category, weight_grams, temp_rating, condition) "
            f"VALUES (?, ?, ?, ?, ?, ?, ?) RETURNING {_GEAR_COLUMNS}",
            (gear_id, user_id, name, category, weight_grams, temp_rating, condition),
        )
        row = await cursor.fetchone()
        await self._conn.commit()
        return _row_to_gear(row)

    async def get_gear(self, gear_id: str) -> GearItem | None:
        cursor = await self._conn.execute(
            f"SELECT {_GEAR_COLUMNS} FROM gear_items WHERE id = ?",
            (gear_id,),
        )
        row = await cursor.fetchone()
        return _row_to_gear(row) if row else None

    async def list_gear(self, user_id: str) -> list[GearItem]:
        cursor = await self._conn.execute(
            f"SELECT {_GEAR_COLUMNS} FROM gear_items WHERE user_id = ? ORDER BY category, name",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_gear(r) for r in rows]

    # --- Trips ---

    async def create_trip(
        self,
        organizer_id: str,
        name: str,
        start_date: str,
        end_date: str,
        type: str = "DAY_HIKE",
        difficulty: str = "MODERATE",
        location: str = "",
        distance: float | None = None,
        elevation_gain: float | None = None,
        description: str = "",
        external_url: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> Trip:
        """Create a trip and enrol the organizer as an accepted participant."""
        trip_id = _new_id()
        cursor = await self._conn.execute(
            f"INSERT INTO trips ({_TRIP_COLUMNS.replace(', created_at', '')}) "
            f"VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING {_TRIP_COLUMNS}",
            (
                trip_id, organizer_id, name, location, start_date, end_date, type, difficulty,
                distance, elevation_gain, description, external_url, latitude, longitude,
            ),
        )
        row = await cursor.fetchone()
        await self._conn.execute(
            "INSERT INTO trip_participants (trip_id, user_id, role, status) "
            "VALUES (?, ?, 'ORGANIZER', 'ACCEPTED')",
            (trip_id, organizer_id),
        )
        await self._conn.commit()
        return _row_to_trip(row)

    async def get_trip(self, trip_id: str) -> Trip | None:
        cursor = await self._conn.execute(
            f"SELECT {_TRIP_COLUMNS} FROM trips WHERE id = ?",
            (trip_id,),
        )
        row = await cursor.fetchone()
        return _row_to_trip(row) if row else None

    async def list_trip_participants(self, trip_id: str) -> list[tuple[str, str, str]]:
        """Return (user_id, role, status) rows."""
        cursor = await self._conn.execute(
            "SELECT user_id, role, status FROM trip_participants WHERE trip_id = ? ORDER BY user_id",
            (trip_id,),
        )
        rows = await cursor.fetchall()
        return [(r[0], r[1], r[2]) for r in rows]

    async def add_trip_gear(
        self,
        trip_id: str,
        gear_id: str,
        quantity: int = 1,
        is_shared: bool = False,
        carried_by_id: str | None = None,
    ) -> bool:
        """Attach gear to a trip. Returns False if it was already attached."""
        cursor = await self._conn.execute(
            "INSERT OR IGNORE INTO trip_gear (trip_id, gear_id, quantity, is_shared, carried_by_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (trip_id, gear_id, quantity, int(is_shared), carried_by_id),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def list_trip_gear(self, trip_id: str) -> list[GearItem]:
        columns = ", ".join(f"g.{c.strip()}" for c in _GEAR_COLUMNS.split(","))
        cursor = await self._conn.execute(
            f"SELECT {columns} FROM trip_gear tg JOIN gear_items g ON g.id = tg.gear_id "
            "WHERE tg.trip_id = ? ORDER BY tg.id",
            (trip_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_gear(r) for r in rows]
