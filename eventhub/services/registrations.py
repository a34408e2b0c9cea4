"""Register/cancel transitions for an (event, user) pair.

Preconditions are checked against a snapshot in a fixed order and the first
failure is raised before anything is written. The write itself goes through
``RegistrationRepository``, which rechecks duplicates and capacity inside
the transaction that also maintains the user's registered-events index.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..models import Event, RegisteredEvent, Registration, User, utcnow
from ..storage.repositories.registrations import WriteResult
from ..utils.errors import (
    AlreadyRegistered,
    EventAlreadyStarted,
    EventFull,
    NotFound,
    NotRegistered,
    PreferenceMismatch,
)
from ..utils.validators import parse_event_types
from .timeline import Clock, event_instant, is_upcoming

logger = logging.getLogger(__name__)


class RegistrationService:
    def __init__(self, event_repo, reg_repo, user_repo, clock: Clock = utcnow):
        self.event_repo = event_repo
        self.reg_repo = reg_repo
        self.user_repo = user_repo
        self.clock = clock

    async def _require_event(self, event_id: str) -> Event:
        event = await self.event_repo.get(event_id)
        if not event:
            raise NotFound("Event not found.")
        return event

    async def _require_user(self, user_id: int) -> User:
        user = await self.user_repo.get_user(user_id)
        if not user:
            raise NotFound("User not found.")
        return user

    async def register(self, event_id: str, user_id: int) -> Registration:
        event = await self._require_event(event_id)
        user = await self._require_user(user_id)
        now = self.clock()

        if event.registration_for(user_id) is not None:
            raise AlreadyRegistered()
        if event.type not in user.preferences:
            raise PreferenceMismatch()
        if not is_upcoming(event, now):
            raise EventAlreadyStarted("Cannot register for an event that has already started.")
        if event.is_full:
            raise EventFull()

        result, registration = await self.reg_repo.create(event_id, user_id, now)
        if result == WriteResult.MISSING:
            raise NotFound("Event not found.")
        if result == WriteResult.DUPLICATE:
            raise AlreadyRegistered()
        if result == WriteResult.FULL:
            logger.info("Event %s filled up before user %s could register", event_id, user_id)
            raise EventFull()

        logger.info("User %s registered for event %s", user_id, event_id)
        return registration  # type: ignore[return-value]

    async def cancel(self, event_id: str, user_id: int) -> None:
        await self._cancel(event_id, user_id)
        logger.info("User %s cancelled registration for event %s", user_id, event_id)

    async def admin_cancel(self, event_id: str, target_user_id: int, admin_id: Optional[int] = None) -> None:
        await self._cancel(event_id, target_user_id)
        logger.info(
            "Admin %s cancelled registration of user %s for event %s",
            admin_id,
            target_user_id,
            event_id,
        )

    async def _cancel(self, event_id: str, user_id: int) -> None:
        event = await self._require_event(event_id)
        if event.registration_for(user_id) is None:
            raise NotRegistered()
        if not is_upcoming(event, self.clock()):
            raise EventAlreadyStarted("Cannot cancel registration for past events.")
        if await self.reg_repo.delete(event_id, user_id) == WriteResult.MISSING:
            raise NotRegistered()

    async def registration_status(self, event_id: str, user_id: int) -> Optional[Registration]:
        return await self.reg_repo.get(event_id, user_id)

    async def _registered(self, user_id: int) -> List[RegisteredEvent]:
        regs = {r.event_id: r for r in await self.reg_repo.list_by_user(user_id)}
        events = await self.event_repo.list_by_ids(regs)
        return [RegisteredEvent(event=e, registered_at=regs[e.event_id].registered_at) for e in events]

    async def list_registered_events(
        self, user_id: int, types: Optional[Iterable] = None
    ) -> List[RegisteredEvent]:
        """Events the user holds a registration for, soonest first.

        A type filter only applies to types the user has in their
        preferences; if none of the requested types qualify the filter is
        dropped.
        """
        user = await self._require_user(user_id)
        items = await self._registered(user_id)
        allowed = [t for t in parse_event_types(types or []) if t in user.preferences]
        if allowed:
            items = [item for item in items if item.event.type in allowed]
        return sorted(items, key=lambda item: event_instant(item.event))

    async def list_past_events(self, user_id: int) -> List[RegisteredEvent]:
        await self._require_user(user_id)
        now = self.clock()
        items = [item for item in await self._registered(user_id) if not is_upcoming(item.event, now)]
        return sorted(items, key=lambda item: event_instant(item.event), reverse=True)

    async def reconcile_user_index(self, user_id: int) -> List[str]:
        user = await self._require_user(user_id)
        event_ids = await self.reg_repo.rebuild_user_index(user_id)
        if set(event_ids) != set(user.registered_events):
            logger.warning(
                "Registered-events index for user %s was out of sync (had %s, now %s)",
                user_id,
                len(user.registered_events),
                len(event_ids),
            )
        return event_ids
