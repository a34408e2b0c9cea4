from __future__ import annotations

from typing import Dict, List, Tuple

from telegram import Update
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

from ..constants import EVENT_STATUS_PAST, EVENT_STATUS_UPCOMING, EVENT_TYPES, Role
from ..keyboards.admin import admin_panel_kb, back_to_panel_kb
from ..logging_config import logger
from ..models import DashboardStats, Event
from ..services.messaging import ADMIN_BUTTON_TEXT
from ..services.permissions import require_role
from ..utils.errors import EventHubError, ValidationFailed
from ..utils.validators import parse_int

NEW_EVENT_USAGE = (
    "Usage: /newevent Title | Description | Location | YYYY-MM-DD | HH:MM | Type | capacity\n"
    f"Types: {', '.join(EVENT_TYPES)}"
)
EDIT_EVENT_USAGE = "Usage: /editevent <event_id> field=value; field=value"
NEW_EVENT_FIELDS = ("title", "description", "location", "event_date", "event_time", "type", "capacity")
FIELD_ALIASES = {"date": "event_date", "time": "event_time"}


def _command_payload(update: Update) -> str:
    text = (update.message.text or "").strip()
    parts = text.split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


def _error_text(exc: EventHubError) -> str:
    if isinstance(exc, ValidationFailed) and len(exc.errors) > 1:
        return "⚠️ Invalid input:\n" + "\n".join(f"• {field}: {msg}" for field, msg in exc.errors.items())
    return f"⚠️ {exc.message}"


def parse_new_event(payload: str) -> Dict[str, str]:
    parts = [part.strip() for part in payload.split("|")]
    if len(parts) != len(NEW_EVENT_FIELDS):
        raise ValidationFailed({"__all__": NEW_EVENT_USAGE})
    return dict(zip(NEW_EVENT_FIELDS, parts))


def parse_edit_event(payload: str) -> Tuple[str, Dict[str, str]]:
    parts = payload.split(maxsplit=1)
    if len(parts) != 2:
        raise ValidationFailed({"__all__": EDIT_EVENT_USAGE})
    event_id, assignments = parts
    fields: Dict[str, str] = {}
    for chunk in assignments.split(";"):
        if not chunk.strip():
            continue
        if "=" not in chunk:
            raise ValidationFailed({"__all__": EDIT_EVENT_USAGE})
        name, value = chunk.split("=", 1)
        name = name.strip().lower()
        fields[FIELD_ALIASES.get(name, name)] = value.strip()
    if not fields:
        raise ValidationFailed({"__all__": EDIT_EVENT_USAGE})
    return event_id, fields


def format_stats(stats: DashboardStats) -> str:
    lines = [
        "📊 Dashboard",
        f"Events: {stats.total_events} (upcoming: {stats.upcoming_events})",
        f"Users: {stats.total_users}",
    ]
    if stats.events_by_type:
        lines.append("By type: " + ", ".join(f"{t}={c}" for t, c in stats.events_by_type.items()))
    if stats.registrations_by_day:
        lines.append("Registrations by day:")
        lines.extend(f"  {day}: {count}" for day, count in stats.registrations_by_day.items())
    if stats.recent_registrations:
        lines.append("Recent registrations:")
        for reg in stats.recent_registrations:
            who = f"@{reg.username}" if reg.username else str(reg.user_id)
            lines.append(f"  {reg.registered_at:%Y-%m-%d %H:%M} {who} → {reg.event_title}")
    return "\n".join(lines)


def format_event_line(event: Event) -> str:
    return (
        f"{event.event_id}: {event.title} [{event.type.value}] "
        f"{event.event_date.isoformat()} {event.event_time} "
        f"({len(event.registrations)}/{event.capacity})"
    )


@require_role(Role.ADMIN)
async def admin_entry(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text("Admin panel", reply_markup=admin_panel_kb())


@require_role(Role.ADMIN)
async def admin_panel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    await query.edit_message_text("Admin panel", reply_markup=admin_panel_kb())


@require_role(Role.ADMIN)
async def stats_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    stats = await context.application.bot_data["stats_service"].dashboard()
    await update.message.reply_text(format_stats(stats))


@require_role(Role.ADMIN)
async def stats_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    stats = await context.application.bot_data["stats_service"].dashboard()
    await query.edit_message_text(format_stats(stats), reply_markup=back_to_panel_kb())


async def _events_text(context: ContextTypes.DEFAULT_TYPE, status: str) -> str:
    events: List[Event] = await context.application.bot_data["event_service"].list_events(status)
    if not events:
        return f"No {status} events."
    return "\n".join([f"Events ({status}):"] + [format_event_line(e) for e in events])


@require_role(Role.ADMIN)
async def admin_events_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    status = _command_payload(update).lower() or EVENT_STATUS_UPCOMING
    try:
        text = await _events_text(context, status)
    except EventHubError as exc:
        text = _error_text(exc)
    await update.message.reply_text(text)


@require_role(Role.ADMIN)
async def admin_events_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    status = EVENT_STATUS_PAST if query.data.endswith(EVENT_STATUS_PAST) else EVENT_STATUS_UPCOMING
    await query.edit_message_text(await _events_text(context, status), reply_markup=back_to_panel_kb())


@require_role(Role.ADMIN)
async def new_event_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event_service = context.application.bot_data["event_service"]
    try:
        event = await event_service.create_event(
            parse_new_event(_command_payload(update)), creator_id=update.effective_user.id
        )
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text(f"✅ Event created: {format_event_line(event)}")


@require_role(Role.ADMIN)
async def edit_event_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event_service = context.application.bot_data["event_service"]
    try:
        event_id, fields = parse_edit_event(_command_payload(update))
        event = await event_service.update_event(event_id, fields)
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text(f"✅ Event updated: {format_event_line(event)}")


@require_role(Role.ADMIN)
async def delete_event_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event_id = _command_payload(update)
    if not event_id:
        await update.message.reply_text("Usage: /deleteevent <event_id>")
        return
    event_service = context.application.bot_data["event_service"]
    try:
        user_ids = await event_service.delete_event(event_id)
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text(
        f"🗑️ Event removed successfully. {len(user_ids)} registrant(s) notified."
    )


@require_role(Role.ADMIN)
async def kick_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    parts = _command_payload(update).split()
    user_id = parse_int(parts[1]) if len(parts) == 2 else None
    if user_id is None:
        await update.message.reply_text("Usage: /kick <event_id> <user_id>")
        return
    registration_service = context.application.bot_data["registration_service"]
    try:
        await registration_service.admin_cancel(parts[0], user_id, admin_id=update.effective_user.id)
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text("✅ Registration cancelled successfully.")


@require_role(Role.ADMIN)
async def registrations_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event_id = _command_payload(update)
    event_service = context.application.bot_data["event_service"]
    profile_service = context.application.bot_data["profile_service"]
    try:
        regs = await event_service.list_event_registrations(event_id)
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    if not regs:
        await update.message.reply_text("No registrations for this event.")
        return
    lines = [f"Registrations for {event_id} ({len(regs)}):"]
    for reg in regs:
        user = await profile_service.get_profile(reg.user_id)
        name = (user.full_name or user.username) if user else ""
        lines.append(f"• {reg.user_id} {name} at {reg.registered_at:%Y-%m-%d %H:%M}")
    await update.message.reply_text("\n".join(lines))


@require_role(Role.ADMIN)
async def users_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    users = await context.application.bot_data["profile_service"].list_users()
    if not users:
        await update.message.reply_text("No users yet.")
        return
    lines = [f"Users ({len(users)}):"]
    for user in users:
        prefs = ", ".join(p.value for p in user.preferences) or "-"
        lines.append(
            f"• {user.user_id} @{user.username or '-'} [{user.role.value}] "
            f"prefs: {prefs}; registrations: {len(user.registered_events)}"
        )
    await update.message.reply_text("\n".join(lines))


@require_role(Role.ADMIN)
async def reconcile_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user_id = parse_int(_command_payload(update))
    if user_id is None:
        await update.message.reply_text("Usage: /reconcile <user_id>")
        return
    try:
        event_ids = await context.application.bot_data["registration_service"].reconcile_user_index(user_id)
    except EventHubError as exc:
        await update.message.reply_text(_error_text(exc))
        return
    await update.message.reply_text(f"✅ Index rebuilt: {len(event_ids)} registration(s).")


@require_role(Role.ADMIN)
async def export_registrations(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    buffer = await context.application.bot_data["stats_service"].export_registrations()
    await context.bot.send_document(
        chat_id=query.message.chat_id,
        document=buffer,
        filename="registrations.xlsx",
        caption="Registrations export",
    )
    logger.info("Registrations exported by user_id=%s", query.from_user.id)
    await query.edit_message_text("Export sent", reply_markup=admin_panel_kb())


def setup_handlers(application):
    application.add_handler(CommandHandler("admin", admin_entry))
    application.add_handler(MessageHandler(filters.Regex(f"^{ADMIN_BUTTON_TEXT}$"), admin_entry))
    application.add_handler(CommandHandler("stats", stats_cmd))
    application.add_handler(CommandHandler("adminevents", admin_events_cmd))
    application.add_handler(CommandHandler("newevent", new_event_cmd))
    application.add_handler(CommandHandler("editevent", edit_event_cmd))
    application.add_handler(CommandHandler("deleteevent", delete_event_cmd))
    application.add_handler(CommandHandler("kick", kick_cmd))
    application.add_handler(CommandHandler("regs", registrations_cmd))
    application.add_handler(CommandHandler("users", users_cmd))
    application.add_handler(CommandHandler("reconcile", reconcile_cmd))
    application.add_handler(CallbackQueryHandler(admin_panel, pattern="^admin_panel$"))
    application.add_handler(CallbackQueryHandler(stats_callback, pattern="^admin_stats$"))
    application.add_handler(CallbackQueryHandler(admin_events_callback, pattern="^admin_events_.*$"))
    application.add_handler(CallbackQueryHandler(export_registrations, pattern="^admin_export_regs$"))
