from __future__ import annotations

import io
from typing import Optional

from ..constants import Role
from ..models import DashboardStats, format_ts, utcnow
from .timeline import Clock, is_upcoming

EXPORT_COLUMNS = [
    "event_id",
    "title",
    "event_date",
    "event_time",
    "type",
    "user_id",
    "username",
    "full_name",
    "registered_at",
]


class StatsService:
    """Read-only dashboard figures. Never writes."""

    def __init__(self, event_repo, user_repo, reg_repo, clock: Clock = utcnow, recent_limit: int = 10):
        self.event_repo = event_repo
        self.user_repo = user_repo
        self.reg_repo = reg_repo
        self.clock = clock
        self.recent_limit = recent_limit

    async def dashboard(self, recent_limit: Optional[int] = None) -> DashboardStats:
        limit = recent_limit if recent_limit is not None else self.recent_limit
        now = self.clock()
        events = await self.event_repo.list_events()
        return DashboardStats(
            total_events=len(events),
            total_users=await self.user_repo.count_users(Role.USER),
            upcoming_events=sum(1 for e in events if is_upcoming(e, now)),
            events_by_type=await self.event_repo.count_by_type(),
            registrations_by_day=await self.reg_repo.count_by_day(),
            recent_registrations=await self.reg_repo.recent(limit) if limit > 0 else [],
        )

    async def export_registrations(self) -> io.BytesIO:
        """Every registration as an .xlsx workbook."""
        # Heavy dependency: import lazily to keep startup fast.
        import pandas as pd

        rows = await self.reg_repo.export_rows()
        df = pd.DataFrame([dict(row) for row in rows], columns=EXPORT_COLUMNS)
        df["exported_at"] = format_ts(self.clock())
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="registrations")
        buffer.seek(0)
        return buffer
