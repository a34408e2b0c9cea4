from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

import aiosqlite

from ...models import RecentRegistration, Registration, format_ts, parse_ts
from ..db import Database
from .events import _row_to_registration


class WriteResult(str, Enum):
    OK = "ok"
    MISSING = "missing"
    DUPLICATE = "duplicate"
    FULL = "full"


class RegistrationRepository:
    """Registrations plus the per-user ``user_events`` mirror.

    Every write touches both tables inside one transaction.
    """

    def __init__(self, db: Database):
        self.db = db

    async def list_by_event(self, event_id: str) -> List[Registration]:
        rows = await self.db.fetchall(
            "SELECT * FROM registrations WHERE event_id = ? ORDER BY id ASC", (event_id,)
        )
        return [_row_to_registration(row) for row in rows]

    async def list_by_user(self, user_id: int) -> List[Registration]:
        rows = await self.db.fetchall(
            "SELECT * FROM registrations WHERE user_id = ? ORDER BY id ASC", (user_id,)
        )
        return [_row_to_registration(row) for row in rows]

    async def get(self, event_id: str, user_id: int) -> Optional[Registration]:
        row = await self.db.fetchone(
            "SELECT * FROM registrations WHERE event_id = ? AND user_id = ?",
            (event_id, user_id),
        )
        if not row:
            return None
        return _row_to_registration(row)

    async def create(
        self, event_id: str, user_id: int, registered_at: datetime
    ) -> Tuple[WriteResult, Optional[Registration]]:
        """Insert a registration if the seat is still free at commit time."""
        async with self.db.transaction() as conn:
            async with conn.execute(
                "SELECT capacity FROM events WHERE event_id = ?", (event_id,)
            ) as cursor:
                event_row = await cursor.fetchone()
            if not event_row:
                return WriteResult.MISSING, None

            async with conn.execute(
                "SELECT COUNT(*) AS c, SUM(user_id = ?) AS mine FROM registrations WHERE event_id = ?",
                (user_id, event_id),
            ) as cursor:
                counts = await cursor.fetchone()
            if counts["mine"]:
                return WriteResult.DUPLICATE, None
            if int(counts["c"]) >= int(event_row["capacity"]):
                return WriteResult.FULL, None

            async with conn.execute(
                "INSERT INTO registrations (event_id, user_id, registered_at) VALUES (?, ?, ?)",
                (event_id, user_id, format_ts(registered_at)),
            ) as cursor:
                reg_id = cursor.lastrowid
            await conn.execute(
                "INSERT OR IGNORE INTO user_events (user_id, event_id) VALUES (?, ?)",
                (user_id, event_id),
            )
        return WriteResult.OK, Registration(
            id=reg_id, event_id=event_id, user_id=user_id, registered_at=registered_at
        )

    async def delete(self, event_id: str, user_id: int) -> WriteResult:
        async with self.db.transaction() as conn:
            async with conn.execute(
                "DELETE FROM registrations WHERE event_id = ? AND user_id = ?",
                (event_id, user_id),
            ) as cursor:
                deleted = cursor.rowcount
            await conn.execute(
                "DELETE FROM user_events WHERE event_id = ? AND user_id = ?",
                (event_id, user_id),
            )
        return WriteResult.OK if deleted else WriteResult.MISSING

    async def rebuild_user_index(self, user_id: int) -> List[str]:
        async with self.db.transaction() as conn:
            await conn.execute("DELETE FROM user_events WHERE user_id = ?", (user_id,))
            async with conn.execute(
                "SELECT event_id FROM registrations WHERE user_id = ? ORDER BY registered_at ASC, id ASC",
                (user_id,),
            ) as cursor:
                event_ids = [row["event_id"] for row in await cursor.fetchall()]
            await conn.executemany(
                "INSERT INTO user_events (user_id, event_id) VALUES (?, ?)",
                [(user_id, event_id) for event_id in event_ids],
            )
        return event_ids

    async def recent(self, limit: int) -> List[RecentRegistration]:
        rows = await self.db.fetchall(
            """
            SELECT r.event_id, e.title, r.user_id, u.username, r.registered_at
              FROM registrations r
              JOIN events e ON e.event_id = r.event_id
              LEFT JOIN users u ON u.user_id = r.user_id
             ORDER BY r.registered_at DESC, r.id DESC
             LIMIT ?
            """,
            (limit,),
        )
        return [self._row_to_recent(row) for row in rows]

    @staticmethod
    def _row_to_recent(row: aiosqlite.Row) -> RecentRegistration:
        return RecentRegistration(
            event_id=row["event_id"],
            event_title=row["title"],
            user_id=row["user_id"],
            username=row["username"] or "",
            registered_at=parse_ts(row["registered_at"]),
        )

    async def count_by_day(self) -> Dict[str, int]:
        rows = await self.db.fetchall(
            """
            SELECT substr(registered_at, 1, 10) AS day, COUNT(*) AS c
              FROM registrations
             GROUP BY day
             ORDER BY day ASC
            """
        )
        return {row["day"]: int(row["c"]) for row in rows}

    async def export_rows(self) -> List[aiosqlite.Row]:
        return await self.db.fetchall(
            """
            SELECT r.event_id, e.title, e.event_date, e.event_time, e.type,
                   r.user_id, u.username, u.full_name, r.registered_at
              FROM registrations r
              JOIN events e ON e.event_id = r.event_id
              LEFT JOIN users u ON u.user_id = r.user_id
             ORDER BY e.event_date ASC, e.event_time ASC, r.id ASC
            """
        )
