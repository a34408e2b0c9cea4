from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from ..services.messaging import send_main_menu

logger = logging.getLogger(__name__)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    profile_service = context.application.bot_data["profile_service"]
    profile = await profile_service.ensure_user(
        user_id=user.id, username=user.username or "", full_name=user.full_name or ""
    )
    if not profile.preferences:
        text = (
            "Welcome! Pick the event types you are interested in via ⭐ Preferences. "
            "You can only register for events of those types."
        )
        logger.info("New or preference-less user_id=%s", user.id)
    else:
        text = "Welcome back! What would you like to do?"
    await send_main_menu(context, chat_id=user.id, text=text)


def setup_handlers(application):
    application.add_handler(CommandHandler("start", start))
