from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class EventType(str, Enum):
    ACADEMIC = "Academic"
    SOCIAL = "Social"
    SPORTS = "Sports"
    CULTURAL = "Cultural"
    WORKSHOP = "Workshop"
    CONFERENCE = "Conference"


EVENT_TYPES = [t.value for t in EventType]

EVENT_STATUS_UPCOMING = "upcoming"
EVENT_STATUS_PAST = "past"
EVENT_STATUS_ALL = "all"
