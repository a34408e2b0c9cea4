from __future__ import annotations

from typing import Iterable, List, Optional

from ..constants import EventType, Role
from ..logging_config import logger
from ..models import User
from ..utils.errors import NotFound, ValidationFailed
from ..utils.validators import parse_event_type


class ProfileService:
    def __init__(self, user_repo):
        self.user_repo = user_repo

    async def ensure_user(self, user_id: int, username: str, full_name: str) -> User:
        user = await self.user_repo.upsert_user(user_id, username, full_name)
        logger.debug("Ensured user user_id=%s username=%s", user_id, username)
        return user

    async def get_profile(self, user_id: int) -> Optional[User]:
        return await self.user_repo.get_user(user_id)

    async def require_user(self, user_id: int) -> User:
        user = await self.user_repo.get_user(user_id)
        if not user:
            raise NotFound("User not found.")
        return user

    async def update_preferences(self, user_id: int, preferences: Iterable) -> User:
        if isinstance(preferences, (str, bytes)):
            raise ValidationFailed({"preferences": "Preferences must be a list."})
        parsed: List[EventType] = []
        for raw in preferences:
            event_type = parse_event_type(raw)
            if event_type is None:
                raise ValidationFailed({"preferences": f"Unknown event type '{raw}'."})
            if event_type not in parsed:
                parsed.append(event_type)
        await self.require_user(user_id)
        await self.user_repo.set_preferences(user_id, parsed)
        logger.info("Preferences updated for user_id=%s: %s", user_id, [p.value for p in parsed])
        return await self.require_user(user_id)

    async def toggle_preference(self, user_id: int, event_type) -> User:
        user = await self.require_user(user_id)
        parsed = parse_event_type(event_type)
        if parsed is None:
            raise ValidationFailed({"preferences": f"Unknown event type '{event_type}'."})
        prefs = list(user.preferences)
        if parsed in prefs:
            prefs.remove(parsed)
        else:
            prefs.append(parsed)
        return await self.update_preferences(user_id, prefs)

    async def list_users(self, role: Optional[Role] = None) -> List[User]:
        return await self.user_repo.list_users(role)

    async def assign_role(self, user_id: int, role: Role):
        await self.user_repo.set_role(user_id, role)
        logger.info("Role %s assigned to %s", role.value, user_id)

    async def get_role(self, user_id: int) -> Role:
        return await self.user_repo.get_role(user_id)
