from __future__ import annotations

import logging
from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

from ..models import Page
from ..services.messaging import (
    MENU_LABEL_EVENTS,
    MENU_LABEL_MY_EVENTS,
    MENU_LABEL_PAST_EVENTS,
    format_event,
    send_main_menu,
)
from ..utils.errors import EventHubError

logger = logging.getLogger(__name__)


def _events_keyboard(page: Page) -> InlineKeyboardMarkup:
    rows = []
    for ev in page.items:
        label = f"{ev.title} ({ev.event_date.isoformat()} {ev.event_time})"
        if ev.is_full:
            label += " · full"
        rows.append([InlineKeyboardButton(label, callback_data=f"event_view_{ev.event_id}")])
    pager = []
    if page.page > 1:
        pager.append(InlineKeyboardButton("⬅️", callback_data=f"events_page_{page.page - 1}"))
    if page.page < page.pages:
        pager.append(InlineKeyboardButton("➡️", callback_data=f"events_page_{page.page + 1}"))
    if pager:
        rows.append(pager)
    return InlineKeyboardMarkup(rows)


def _page_text(page: Page) -> str:
    return f"Upcoming events (page {page.page}/{max(page.pages, 1)}, {page.total} total):"


def _parse_types_arg(args: Optional[List[str]]) -> List[str]:
    if not args:
        return []
    return [chunk.strip() for chunk in " ".join(args).split(",") if chunk.strip()]


async def list_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Menu button or ``/events [Type,Type]``."""
    event_service = context.application.bot_data["event_service"]
    types = _parse_types_arg(getattr(context, "args", None))
    context.user_data["events_types"] = types
    page = await event_service.list_upcoming_events(types=types, page=1)
    if not page.items:
        await update.message.reply_text("No upcoming events right now, check back later.")
        return
    await update.message.reply_text(_page_text(page), reply_markup=_events_keyboard(page))


async def events_page(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_service = context.application.bot_data["event_service"]
    try:
        number = int(query.data.replace("events_page_", ""))
        page = await event_service.list_upcoming_events(
            types=context.user_data.get("events_types"), page=number
        )
    except (ValueError, EventHubError):
        await query.edit_message_text("⚠️ Invalid page.")
        return
    if not page.items:
        await query.edit_message_text("No more upcoming events.")
        return
    await query.edit_message_text(_page_text(page), reply_markup=_events_keyboard(page))


async def view_event(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("event_view_", "")
    event_service = context.application.bot_data["event_service"]
    try:
        event = await event_service.get_event(event_id)
    except EventHubError as exc:
        await query.edit_message_text(f"⚠️ {exc.message}")
        return

    registration = event.registration_for(query.from_user.id)
    actions = []
    if registration is None:
        if not event.is_full:
            actions.append([InlineKeyboardButton("📝 Register", callback_data=f"event_register_{event_id}")])
        status = "not registered"
    else:
        actions.append([InlineKeyboardButton("❌ Cancel registration", callback_data=f"event_cancel_{event_id}")])
        status = f"registered on {registration.registered_at:%Y-%m-%d %H:%M} UTC"
    actions.append([InlineKeyboardButton("↩️ Back", callback_data="events_back")])
    text = f"{format_event(event)}\nYour status: {status}"
    await query.edit_message_text(text, reply_markup=InlineKeyboardMarkup(actions))


async def register_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("event_register_", "")
    profile_service = context.application.bot_data["profile_service"]
    registration_service = context.application.bot_data["registration_service"]
    user = query.from_user
    if await profile_service.get_profile(user.id) is None:
        await profile_service.ensure_user(user.id, user.username or "", user.full_name or "")
    try:
        await registration_service.register(event_id, user.id)
    except EventHubError as exc:
        await query.edit_message_text(f"⚠️ {exc.message}")
        return
    await query.edit_message_text("✅ Successfully registered for event.")
    await send_main_menu(context, user.id, text="Registration saved. What next?")


async def cancel_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    event_id = query.data.replace("event_cancel_", "")
    registration_service = context.application.bot_data["registration_service"]
    try:
        await registration_service.cancel(event_id, query.from_user.id)
    except EventHubError as exc:
        await query.edit_message_text(f"⚠️ {exc.message}")
        return
    await query.edit_message_text("❌ Registration cancelled.")
    await send_main_menu(context, query.from_user.id, text="Registration cancelled.")


async def list_my_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Menu button or ``/myevents [Type,Type]``."""
    registration_service = context.application.bot_data["registration_service"]
    types = _parse_types_arg(getattr(context, "args", None))
    try:
        items = await registration_service.list_registered_events(update.effective_user.id, types=types)
    except EventHubError:
        items = []
    if not items:
        await update.message.reply_text("You have no registrations. Press /start if you are new here.")
        return
    rows = [
        [
            InlineKeyboardButton(
                f"{item.event.title} ({item.event.event_date.isoformat()} {item.event.event_time})",
                callback_data=f"event_view_{item.event.event_id}",
            )
        ]
        for item in items
    ]
    rows.append([InlineKeyboardButton("↩️ Back", callback_data="events_back")])
    await update.message.reply_text("Your registrations:", reply_markup=InlineKeyboardMarkup(rows))


async def list_past_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    registration_service = context.application.bot_data["registration_service"]
    try:
        items = await registration_service.list_past_events(update.effective_user.id)
    except EventHubError:
        items = []
    if not items:
        await update.message.reply_text("No past events yet.")
        return
    lines = ["Past events:"]
    for item in items:
        lines.append(
            f"• {item.event.title}, {item.event.event_date.isoformat()} {item.event.event_time} UTC"
        )
    await update.message.reply_text("\n".join(lines))


async def back_from_events(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await send_main_menu(context, query.from_user.id)


def setup_handlers(application):
    application.add_handler(CommandHandler("events", list_events))
    application.add_handler(CommandHandler("myevents", list_my_events))
    application.add_handler(CommandHandler("past", list_past_events))
    application.add_handler(MessageHandler(filters.Regex(f"^{MENU_LABEL_EVENTS}$"), list_events))
    application.add_handler(MessageHandler(filters.Regex(f"^{MENU_LABEL_MY_EVENTS}$"), list_my_events))
    application.add_handler(MessageHandler(filters.Regex(f"^{MENU_LABEL_PAST_EVENTS}$"), list_past_events))
    application.add_handler(CallbackQueryHandler(events_page, pattern="^events_page_.*$"))
    application.add_handler(CallbackQueryHandler(view_event, pattern="^event_view_.*$"))
    application.add_handler(CallbackQueryHandler(register_callback, pattern="^event_register_.*$"))
    application.add_handler(CallbackQueryHandler(cancel_callback, pattern="^event_cancel_.*$"))
    application.add_handler(CallbackQueryHandler(back_from_events, pattern="^events_back$"))
