from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Awaitable, Callable

from telegram import Update
from telegram.ext import ContextTypes

from ..constants import Role
from ..utils.errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

ROLE_ORDER = {
    Role.USER: 0,
    Role.ADMIN: 1,
}


def has_role(user_role: Role, required: Role) -> bool:
    return ROLE_ORDER[user_role] >= ROLE_ORDER[required]


def resolve_user(update: Update):
    """Telegram user behind any update shape, or None."""
    user = getattr(update, "effective_user", None)
    if not user:
        cq = getattr(update, "callback_query", None)
        if cq:
            user = getattr(cq, "from_user", None)
    if not user and getattr(update, "message", None):
        user = getattr(update.message, "from_user", None)
    return user


def require_role(required: Role):
    def decorator(func: Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[Any]]):
        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
            user = resolve_user(update)
            if not user:
                raise Unauthenticated()
            profile_service = context.application.bot_data["profile_service"]

            # Configured admins are elevated even before they touch /start.
            cfg = context.application.bot_data.get("config")
            admin_ids = set(getattr(cfg, "admin_ids", None) or [])
            if user.id in admin_ids:
                profile = await profile_service.get_profile(user.id)
                if profile is None:
                    await profile_service.ensure_user(
                        user.id,
                        getattr(user, "username", "") or "",
                        getattr(user, "full_name", "") or "",
                    )
                if profile is None or not profile.is_admin:
                    await profile_service.assign_role(user.id, Role.ADMIN)
                return await func(update, context, *args, **kwargs)

            user_role = await profile_service.get_role(user.id)
            if not has_role(user_role, required):
                logger.warning("User %s with role %s denied %s", user.id, user_role.value, func.__name__)
                raise Forbidden(f"Need role {required.value}, got {user_role.value}.")
            return await func(update, context, *args, **kwargs)

        return wrapper

    return decorator
