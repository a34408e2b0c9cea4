from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from ..constants import EVENT_STATUS_ALL, EVENT_STATUS_PAST, EVENT_STATUS_UPCOMING, EventType
from ..models import Event, Page, Registration, utcnow
from ..utils.errors import (
    CapacityInvariantViolated,
    EventAlreadyStarted,
    NotFound,
    ValidationFailed,
)
from ..utils.validators import (
    is_blank,
    is_valid_time,
    normalize_time,
    parse_event_type,
    parse_event_types,
    parse_int,
    parse_iso_date,
)
from . import capacity
from .timeline import Clock, event_instant, is_upcoming

logger = logging.getLogger(__name__)

Notifier = Callable[[List[int], Event], Awaitable[None]]

EVENT_FIELDS = ("title", "description", "location", "event_date", "event_time", "type", "capacity")
_TEXT_FIELDS = {"title": "Title", "description": "Description", "location": "Location"}


def clean_event_fields(fields: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate raw event fields and return them converted.

    With ``partial`` only the supplied fields are checked. All problems are
    collected before raising ``ValidationFailed``.
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for name in fields:
        if name not in EVENT_FIELDS:
            errors[name] = f"Unknown field '{name}'."

    for name, label in _TEXT_FIELDS.items():
        if name not in fields:
            if not partial:
                errors[name] = f"{label} is required."
            continue
        if is_blank(fields[name]):
            errors[name] = f"{label} is required."
        else:
            cleaned[name] = str(fields[name]).strip()

    if "event_date" in fields or not partial:
        parsed_date = parse_iso_date(fields.get("event_date"))
        if parsed_date is None:
            errors["event_date"] = "Valid date is required (YYYY-MM-DD)."
        else:
            cleaned["event_date"] = parsed_date

    if "event_time" in fields or not partial:
        raw_time = str(fields.get("event_time") or "").strip()
        if not is_valid_time(raw_time):
            errors["event_time"] = "Valid time in HH:MM format is required."
        else:
            cleaned["event_time"] = normalize_time(raw_time)

    if "type" in fields or not partial:
        event_type = parse_event_type(fields.get("type"))
        if event_type is None:
            errors["type"] = "Invalid event type."
        else:
            cleaned["type"] = event_type

    if "capacity" in fields or not partial:
        seats = parse_int(fields.get("capacity"))
        if seats is None or seats < 1:
            errors["capacity"] = "Capacity must be at least 1."
        else:
            cleaned["capacity"] = seats

    if errors:
        raise ValidationFailed(errors)
    return cleaned


class EventService:
    def __init__(
        self,
        event_repo,
        reg_repo,
        clock: Clock = utcnow,
        notifier: Optional[Notifier] = None,
        page_size: int = 10,
    ):
        self.event_repo = event_repo
        self.reg_repo = reg_repo
        self.clock = clock
        self.notifier = notifier
        self.page_size = page_size

    async def get_event(self, event_id: str) -> Event:
        event = await self.event_repo.get(event_id)
        if not event:
            raise NotFound("Event not found.")
        return event

    async def list_upcoming_events(
        self,
        types: Optional[Iterable] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page:
        page_size = page_size if page_size is not None else self.page_size
        if page < 1 or page_size < 1:
            raise ValidationFailed({"page": "Page and page size must be positive."})

        type_filter: Optional[List[EventType]] = None
        requested = list(types or [])
        if requested:
            type_filter = parse_event_types(requested)

        now = self.clock()
        events = await self.event_repo.list_events(type_filter)
        upcoming = sorted(
            (e for e in events if is_upcoming(e, now)),
            key=lambda e: (event_instant(e), e.event_id),
        )
        start = (page - 1) * page_size
        return Page(
            items=upcoming[start:start + page_size],
            total=len(upcoming),
            page=page,
            page_size=page_size,
        )

    async def list_events(self, status: str = EVENT_STATUS_ALL) -> List[Event]:
        """Admin listing. Upcoming soonest first, past and all latest first."""
        if status not in (EVENT_STATUS_ALL, EVENT_STATUS_UPCOMING, EVENT_STATUS_PAST):
            raise ValidationFailed({"status": "Status must be upcoming, past or all."})
        now = self.clock()
        events = await self.event_repo.list_events()
        if status == EVENT_STATUS_UPCOMING:
            events = [e for e in events if is_upcoming(e, now)]
        elif status == EVENT_STATUS_PAST:
            events = [e for e in events if not is_upcoming(e, now)]
        return sorted(
            events,
            key=lambda e: (event_instant(e), e.event_id),
            reverse=status != EVENT_STATUS_UPCOMING,
        )

    async def list_event_registrations(self, event_id: str) -> List[Registration]:
        event = await self.get_event(event_id)
        return list(event.registrations)

    async def create_event(self, fields: Mapping[str, Any], creator_id: Optional[int]) -> Event:
        cleaned = clean_event_fields(fields)
        now = utcnow()
        event = Event(
            event_id=f"event_{uuid4().hex[:8]}",
            creator_id=creator_id,
            registrations=[],
            created_at=now,
            updated_at=now,
            **cleaned,
        )
        await self.event_repo.add(event)
        logger.info(
            "Event created id=%s title=%s type=%s capacity=%s by=%s",
            event.event_id,
            event.title,
            event.type.value,
            event.capacity,
            creator_id,
        )
        return event

    async def update_event(self, event_id: str, fields: Mapping[str, Any]) -> Event:
        cleaned = clean_event_fields(fields, partial=True)
        event = await self.get_event(event_id)
        updated = replace(event, **cleaned)
        if not capacity.can_hold(event, updated.capacity):
            raise CapacityInvariantViolated()
        # Registrations may have arrived since the read; the repository rechecks.
        if not await self.event_repo.update_checked(updated):
            raise CapacityInvariantViolated()
        logger.info("Event %s updated fields=%s", event_id, sorted(cleaned))
        return await self.get_event(event_id)

    async def delete_event(self, event_id: str) -> List[int]:
        event = await self.get_event(event_id)
        if not is_upcoming(event, self.clock()):
            raise EventAlreadyStarted("Cannot delete an event that has already started.")
        user_ids = await self.event_repo.delete(event_id)
        logger.info("Event %s deleted, %s registrations removed", event_id, len(user_ids))
        if user_ids and self.notifier is not None:
            try:
                await self.notifier(user_ids, event)
            except Exception:
                logger.exception("Failed to notify registrants of deleted event %s", event_id)
        return user_ids
