"""Resolve an event's date and time-of-day into a single UTC instant.

All upcoming/past decisions go through ``event_instant``: comparing the date
and the time string separately breaks at day boundaries.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Callable

from ..models import utcnow

if TYPE_CHECKING:
    from ..models import Event

Clock = Callable[[], datetime]


def resolve_instant(event_date: date, event_time: str) -> datetime:
    hours, minutes = (int(part) for part in event_time.split(":"))
    return datetime.combine(event_date, time(hours, minutes), tzinfo=timezone.utc)


def event_instant(event: "Event") -> datetime:
    return resolve_instant(event.event_date, event.event_time)


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_upcoming(event: "Event", now: datetime) -> bool:
    return event_instant(event) > _aware(now)


def is_past(event: "Event", now: datetime) -> bool:
    # An event starting exactly at ``now`` counts as past.
    return not is_upcoming(event, now)


def fixed_clock(instant: datetime) -> Clock:
    instant = _aware(instant)
    return lambda: instant


__all__ = [
    "Clock",
    "event_instant",
    "fixed_clock",
    "is_past",
    "is_upcoming",
    "resolve_instant",
    "utcnow",
]
