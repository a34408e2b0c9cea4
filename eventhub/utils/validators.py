from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable, List, Optional

from ..constants import EventType


TIME_REGEX = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def is_valid_time(value: str) -> bool:
    return bool(TIME_REGEX.match(value or ""))


def normalize_time(value: str) -> str:
    """'9:05' -> '09:05'. Caller must validate first."""
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def parse_iso_date(value) -> Optional[date]:
    """``YYYY-MM-DD`` or a full ISO-8601 datetime; anything else is None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_event_type(value) -> Optional[EventType]:
    if isinstance(value, EventType):
        return value
    try:
        return EventType(str(value).strip())
    except ValueError:
        return None


def parse_event_types(values: Iterable) -> List[EventType]:
    """Drops unknown values and duplicates, keeps order."""
    result: List[EventType] = []
    for value in values:
        parsed = parse_event_type(value)
        if parsed is not None and parsed not in result:
            result.append(parsed)
    return result


def is_blank(value) -> bool:
    return value is None or not str(value).strip()
