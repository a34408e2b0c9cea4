from __future__ import annotations

import json
from typing import List, Optional

import aiosqlite

from ...constants import EventType, Role
from ...models import User, format_ts, parse_ts, utcnow
from ...utils.validators import parse_event_types
from ..db import Database


def _parse_role(raw: Optional[str]) -> Role:
    try:
        return Role(raw)
    except ValueError:
        return Role.USER


def _parse_preferences(raw: Optional[str]) -> List[EventType]:
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except ValueError:
        return []
    return parse_event_types(values if isinstance(values, list) else [])


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    def _row_to_user(self, row: aiosqlite.Row, registered_events: List[str]) -> User:
        return User(
            user_id=row["user_id"],
            username=row["username"] or "",
            full_name=row["full_name"] or "",
            role=_parse_role(row["role"]),
            preferences=_parse_preferences(row["preferences"]),
            registered_events=registered_events,
            created_at=parse_ts(row["created_at"]),
            updated_at=parse_ts(row["updated_at"]),
        )

    async def _registered_event_ids(self, user_id: int) -> List[str]:
        rows = await self.db.fetchall(
            "SELECT event_id FROM user_events WHERE user_id = ? ORDER BY id ASC", (user_id,)
        )
        return [row["event_id"] for row in rows]

    async def upsert_user(self, user_id: int, username: str, full_name: str) -> User:
        now = format_ts(utcnow())
        await self.db.execute(
            """
            INSERT INTO users (user_id, username, full_name, role, preferences, created_at, updated_at)
            VALUES (?, ?, ?, ?, '[]', ?, ?)
            ON CONFLICT(user_id) DO UPDATE
               SET username = excluded.username,
                   full_name = excluded.full_name,
                   updated_at = excluded.updated_at
            """,
            (user_id, username, full_name, Role.USER.value, now, now),
        )
        return await self.get_user(user_id)  # type: ignore

    async def get_user(self, user_id: int) -> Optional[User]:
        row = await self.db.fetchone("SELECT * FROM users WHERE user_id = ?", (user_id,))
        if not row:
            return None
        return self._row_to_user(row, await self._registered_event_ids(user_id))

    async def list_users(self, role: Optional[Role] = None) -> List[User]:
        if role is None:
            rows = await self.db.fetchall("SELECT * FROM users ORDER BY user_id ASC")
        else:
            rows = await self.db.fetchall(
                "SELECT * FROM users WHERE role = ? ORDER BY user_id ASC", (role.value,)
            )
        index_rows = await self.db.fetchall("SELECT user_id, event_id FROM user_events ORDER BY id ASC")
        by_user: dict[int, List[str]] = {}
        for index_row in index_rows:
            by_user.setdefault(index_row["user_id"], []).append(index_row["event_id"])
        return [self._row_to_user(row, by_user.get(row["user_id"], [])) for row in rows]

    async def count_users(self, role: Optional[Role] = None) -> int:
        if role is None:
            row = await self.db.fetchone("SELECT COUNT(*) AS c FROM users")
        else:
            row = await self.db.fetchone("SELECT COUNT(*) AS c FROM users WHERE role = ?", (role.value,))
        return int(row["c"]) if row else 0

    async def get_role(self, user_id: int) -> Role:
        row = await self.db.fetchone("SELECT role FROM users WHERE user_id = ?", (user_id,))
        if not row:
            return Role.USER
        return _parse_role(row["role"])

    async def set_role(self, user_id: int, role: Role):
        await self.db.execute(
            "UPDATE users SET role = ?, updated_at = ? WHERE user_id = ?",
            (role.value, format_ts(utcnow()), user_id),
        )

    async def set_preferences(self, user_id: int, preferences: List[EventType]):
        await self.db.execute(
            "UPDATE users SET preferences = ?, updated_at = ? WHERE user_id = ?",
            (json.dumps([p.value for p in preferences]), format_ts(utcnow()), user_id),
        )
