from __future__ import annotations

from typing import List

from telegram import ReplyKeyboardMarkup
from telegram.ext import ContextTypes

from ..constants import Role
from ..logging_config import logger
from ..models import Event
from .events import Notifier

MENU_LABEL_EVENTS = "📅 Events"
MENU_LABEL_MY_EVENTS = "📝 My events"
MENU_LABEL_PAST_EVENTS = "🕘 Past events"
MENU_LABEL_PREFERENCES = "⭐ Preferences"
ADMIN_BUTTON_TEXT = "⚙️ Admin"
DEFAULT_MENU_TEXT = "Main menu"

BASE_MENU_ITEMS: List[str] = [
    MENU_LABEL_EVENTS,
    MENU_LABEL_MY_EVENTS,
    MENU_LABEL_PAST_EVENTS,
    MENU_LABEL_PREFERENCES,
]


def build_main_keyboard(show_admin: bool) -> ReplyKeyboardMarkup:
    buttons = [[title] for title in BASE_MENU_ITEMS]
    if show_admin:
        buttons.append([ADMIN_BUTTON_TEXT])
    return ReplyKeyboardMarkup(buttons, resize_keyboard=True, one_time_keyboard=False)


async def send_main_menu(context: ContextTypes.DEFAULT_TYPE, chat_id: int, text: str = DEFAULT_MENU_TEXT):
    profile_service = context.application.bot_data["profile_service"]
    role = await profile_service.get_role(chat_id)
    keyboard = build_main_keyboard(show_admin=role == Role.ADMIN)
    await context.bot.send_message(chat_id=chat_id, text=text, reply_markup=keyboard)
    logger.debug("Sent main menu to chat_id=%s role=%s", chat_id, role.value)


def format_event(event: Event) -> str:
    return (
        f"📅 {event.title} [{event.type.value}]\n"
        f"🕒 {event.event_date.isoformat()} {event.event_time} UTC\n"
        f"📍 {event.location}\n"
        f"ℹ️ {event.description}\n"
        f"Free spots: {event.available_spots}/{event.capacity}"
        + (" (full)" if event.is_full else "")
    )


def make_event_notifier(bot) -> Notifier:
    """Notifier that tells former registrants their event was removed."""

    async def notify(user_ids: List[int], event: Event) -> None:
        text = (
            f"❌ The event \"{event.title}\" on {event.event_date.isoformat()} "
            f"{event.event_time} UTC was cancelled by the organisers."
        )
        for user_id in user_ids:
            try:
                await bot.send_message(chat_id=user_id, text=text)
            except Exception:
                logger.exception("Failed to notify user_id=%s about event %s", user_id, event.event_id)

    return notify
