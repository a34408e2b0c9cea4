from __future__ import annotations

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

from ..constants import EVENT_TYPES
from ..models import User
from ..services.messaging import MENU_LABEL_PREFERENCES, send_main_menu
from ..utils.errors import EventHubError

logger = logging.getLogger(__name__)


def _preferences_keyboard(user: User) -> InlineKeyboardMarkup:
    selected = {p.value for p in user.preferences}
    rows = [
        [
            InlineKeyboardButton(
                f"{'✅' if value in selected else '▫️'} {value}",
                callback_data=f"pref_toggle_{value}",
            )
        ]
        for value in EVENT_TYPES
    ]
    rows.append([InlineKeyboardButton("↩️ Done", callback_data="pref_done")])
    return InlineKeyboardMarkup(rows)


def _preferences_text(user: User) -> str:
    chosen = ", ".join(p.value for p in user.preferences) or "none"
    return (
        "⭐ Preferences\n"
        f"Role: {user.role.value}\n"
        f"Event types you can register for: {chosen}\n"
        f"Active registrations: {len(user.registered_events)}"
    )


async def show_preferences(update: Update, context: ContextTypes.DEFAULT_TYPE):
    profile_service = context.application.bot_data["profile_service"]
    tg_user = update.effective_user
    user = await profile_service.get_profile(tg_user.id)
    if not user:
        user = await profile_service.ensure_user(tg_user.id, tg_user.username or "", tg_user.full_name or "")
    await update.message.reply_text(_preferences_text(user), reply_markup=_preferences_keyboard(user))


async def toggle_preference(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    value = query.data.replace("pref_toggle_", "")
    profile_service = context.application.bot_data["profile_service"]
    try:
        user = await profile_service.toggle_preference(query.from_user.id, value)
    except EventHubError as exc:
        await query.edit_message_text(f"⚠️ {exc.message}")
        return
    await query.edit_message_text(_preferences_text(user), reply_markup=_preferences_keyboard(user))


async def preferences_done(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await send_main_menu(context, query.from_user.id, text="Preferences saved.")


def setup_handlers(application):
    application.add_handler(CommandHandler("preferences", show_preferences))
    application.add_handler(MessageHandler(filters.Regex(f"^{MENU_LABEL_PREFERENCES}$"), show_preferences))
    application.add_handler(CallbackQueryHandler(toggle_preference, pattern="^pref_toggle_.*$"))
    application.add_handler(CallbackQueryHandler(preferences_done, pattern="^pref_done$"))
