from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional

import aiosqlite

from ...constants import EventType
from ...models import Event, Registration, format_ts, parse_ts, utcnow
from ..db import Database


def _row_to_event(row: aiosqlite.Row, registrations: List[Registration]) -> Event:
    return Event(
        event_id=row["event_id"],
        title=row["title"],
        description=row["description"],
        location=row["location"],
        event_date=date.fromisoformat(row["event_date"]),
        event_time=row["event_time"],
        type=EventType(row["type"]),
        capacity=row["capacity"],
        creator_id=row["creator_id"],
        registrations=registrations,
        created_at=parse_ts(row["created_at"]),
        updated_at=parse_ts(row["updated_at"]),
    )


def _row_to_registration(row: aiosqlite.Row) -> Registration:
    return Registration(
        id=row["id"],
        event_id=row["event_id"],
        user_id=row["user_id"],
        registered_at=parse_ts(row["registered_at"]),
    )


class EventRepository:
    def __init__(self, db: Database):
        self.db = db

    async def _registrations_for(self, event_ids: Iterable[str]) -> Dict[str, List[Registration]]:
        ids = list(event_ids)
        grouped: Dict[str, List[Registration]] = {event_id: [] for event_id in ids}
        if not ids:
            return grouped
        placeholders = ", ".join("?" for _ in ids)
        rows = await self.db.fetchall(
            f"SELECT * FROM registrations WHERE event_id IN ({placeholders}) ORDER BY id ASC",
            ids,
        )
        for row in rows:
            grouped[row["event_id"]].append(_row_to_registration(row))
        return grouped

    async def _hydrate(self, rows: List[aiosqlite.Row]) -> List[Event]:
        regs = await self._registrations_for(row["event_id"] for row in rows)
        return [_row_to_event(row, regs[row["event_id"]]) for row in rows]

    async def list_events(self, types: Optional[Iterable[EventType]] = None) -> List[Event]:
        if types is None:
            rows = await self.db.fetchall("SELECT * FROM events")
        else:
            values = [t.value for t in types]
            if not values:
                return []
            placeholders = ", ".join("?" for _ in values)
            rows = await self.db.fetchall(
                f"SELECT * FROM events WHERE type IN ({placeholders})", values
            )
        return await self._hydrate(rows)

    async def list_by_ids(self, event_ids: Iterable[str]) -> List[Event]:
        ids = list(event_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = await self.db.fetchall(
            f"SELECT * FROM events WHERE event_id IN ({placeholders})", ids
        )
        return await self._hydrate(rows)

    async def get(self, event_id: str) -> Optional[Event]:
        row = await self.db.fetchone("SELECT * FROM events WHERE event_id = ?", (event_id,))
        if not row:
            return None
        return (await self._hydrate([row]))[0]

    async def add(self, event: Event):
        await self.db.execute(
            """
            INSERT INTO events (event_id, title, description, location, event_date,
                                event_time, type, capacity, creator_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.title,
                event.description,
                event.location,
                event.event_date.isoformat(),
                event.event_time,
                event.type.value,
                event.capacity,
                event.creator_id,
                format_ts(event.created_at),
                format_ts(event.updated_at),
            ),
        )

    async def update_checked(self, event: Event) -> bool:
        """Write ``event`` unless its capacity is below the stored registration count.

        The count is re-read inside the write transaction.
        """
        async with self.db.transaction() as conn:
            async with conn.execute(
                "SELECT COUNT(*) AS c FROM registrations WHERE event_id = ?", (event.event_id,)
            ) as cursor:
                row = await cursor.fetchone()
            if int(row["c"]) > event.capacity:
                return False
            await conn.execute(
                """
                UPDATE events
                   SET title = ?, description = ?, location = ?, event_date = ?,
                       event_time = ?, type = ?, capacity = ?, updated_at = ?
                 WHERE event_id = ?
                """,
                (
                    event.title,
                    event.description,
                    event.location,
                    event.event_date.isoformat(),
                    event.event_time,
                    event.type.value,
                    event.capacity,
                    format_ts(utcnow()),
                    event.event_id,
                ),
            )
        return True

    async def delete(self, event_id: str) -> List[int]:
        """Remove the event, its registrations and index rows. Returns former registrants."""
        async with self.db.transaction() as conn:
            async with conn.execute(
                "SELECT user_id FROM registrations WHERE event_id = ? ORDER BY id ASC", (event_id,)
            ) as cursor:
                user_ids = [row["user_id"] for row in await cursor.fetchall()]
            await conn.execute("DELETE FROM user_events WHERE event_id = ?", (event_id,))
            await conn.execute("DELETE FROM registrations WHERE event_id = ?", (event_id,))
            await conn.execute("DELETE FROM events WHERE event_id = ?", (event_id,))
        return user_ids

    async def count(self) -> int:
        row = await self.db.fetchone("SELECT COUNT(*) AS c FROM events")
        return int(row["c"]) if row else 0

    async def count_by_type(self) -> Dict[str, int]:
        rows = await self.db.fetchall(
            "SELECT type, COUNT(*) AS c FROM events GROUP BY type ORDER BY type ASC"
        )
        return {row["type"]: int(row["c"]) for row in rows}
