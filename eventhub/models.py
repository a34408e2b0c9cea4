from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from .constants import EventType, Role
from .services import capacity

TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(value: datetime) -> str:
    """Fixed-width UTC text so stored timestamps sort lexicographically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TS_FORMAT)


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=timezone.utc)


@dataclass
class Registration:
    id: Optional[int]
    event_id: str
    user_id: int
    registered_at: datetime = field(default_factory=utcnow)


@dataclass
class Event:
    event_id: str
    title: str
    description: str
    location: str
    event_date: date
    event_time: str
    type: EventType
    capacity: int
    creator_id: Optional[int] = None
    registrations: List[Registration] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_full(self) -> bool:
        return capacity.is_full(self)

    @property
    def available_spots(self) -> int:
        return capacity.available_spots(self)

    def registration_for(self, user_id: int) -> Optional[Registration]:
        for reg in self.registrations:
            if reg.user_id == user_id:
                return reg
        return None


@dataclass
class User:
    user_id: int
    username: str = ""
    full_name: str = ""
    role: Role = Role.USER
    preferences: List[EventType] = field(default_factory=list)
    registered_events: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class RegisteredEvent:
    """An event as seen from one registrant."""

    event: Event
    registered_at: datetime


@dataclass
class Page:
    items: List[Event]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return -(-self.total // self.page_size)


@dataclass
class RecentRegistration:
    event_id: str
    event_title: str
    user_id: int
    username: str
    registered_at: datetime


@dataclass
class DashboardStats:
    total_events: int = 0
    total_users: int = 0
    upcoming_events: int = 0
    events_by_type: dict = field(default_factory=dict)
    registrations_by_day: dict = field(default_factory=dict)
    recent_registrations: List[RecentRegistration] = field(default_factory=list)
