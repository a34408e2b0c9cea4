from __future__ import annotations

import logging

from telegram.ext import Application, ApplicationBuilder

from .config import load_config
from .constants import Role
from .handlers import admin as admin_handlers
from .handlers import events as events_handlers
from .handlers import profile as profile_handlers
from .handlers import start as start_handlers
from .logging_config import setup_logging
from .services.events import EventService
from .services.messaging import make_event_notifier
from .services.profiles import ProfileService
from .services.registrations import RegistrationService
from .services.stats import StatsService
from .storage.db import Database
from .storage.repositories.events import EventRepository
from .storage.repositories.registrations import RegistrationRepository
from .storage.repositories.users import UserRepository
from .utils.errors import EventHubError, Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

INTERNAL_ERROR_TEXT = "⚠️ Internal error. It has been logged; please try again later."


async def on_startup(app: Application):
    logger.info("Bootstrapping EventHub...")
    config = app.bot_data["config"]
    db: Database = app.bot_data["db"]

    try:
        await db.init_db()
        logger.info("Database initialized at %s", db.path)
    except Exception:
        logger.exception("Failed to initialize database")
        raise

    app.bot_data["event_service"].notifier = make_event_notifier(app.bot)

    profile_service: ProfileService = app.bot_data["profile_service"]
    for admin_id in config.admin_ids:
        await profile_service.ensure_user(admin_id, username="", full_name=f"admin-{admin_id}")
        await profile_service.assign_role(admin_id, Role.ADMIN)
        logger.info("Granted admin role from config to user_id=%s", admin_id)


async def on_shutdown(app: Application):
    db: Database = app.bot_data.get("db")
    if db:
        await db.close()
        logger.info("Database connection closed")
    logger.info("Bot shutdown complete")


def error_text(err: BaseException, debug: bool = False) -> str:
    if isinstance(err, Unauthenticated):
        return "⛔ Could not identify you. Press /start and try again."
    if isinstance(err, Forbidden):
        return "⛔ Insufficient permissions for this command."
    if isinstance(err, EventHubError):
        return f"⚠️ {err.message}"
    if debug:
        return f"{INTERNAL_ERROR_TEXT}\n{type(err).__name__}: {err}"
    return INTERNAL_ERROR_TEXT


async def on_error(update, context):
    err = context.error
    chat_id = getattr(getattr(update, "effective_chat", None), "id", None)
    if isinstance(err, EventHubError):
        logger.warning("Request rejected (chat_id=%s): %s", chat_id, err)
    else:
        logger.exception("Handler error (chat_id=%s): %s", chat_id, err, exc_info=err)
    message = getattr(update, "effective_message", None)
    if message:
        config = context.application.bot_data.get("config")
        try:
            await message.reply_text(error_text(err, debug=getattr(config, "debug", False)))
        except Exception:
            logger.exception("Failed to send error message to chat_id=%s", chat_id)


def build_application() -> Application:
    config = load_config()
    setup_logging(config)
    db = Database(config.database_path)
    user_repo = UserRepository(db)
    event_repo = EventRepository(db)
    reg_repo = RegistrationRepository(db)

    profile_service = ProfileService(user_repo)
    event_service = EventService(event_repo, reg_repo, page_size=config.page_size)
    registration_service = RegistrationService(event_repo, reg_repo, user_repo)
    stats_service = StatsService(
        event_repo, user_repo, reg_repo, recent_limit=config.recent_registrations_limit
    )

    app = (
        ApplicationBuilder()
        .token(config.bot_token)
        .post_init(on_startup)
        .post_shutdown(on_shutdown)
        .build()
    )

    app.bot_data["config"] = config
    app.bot_data["db"] = db
    app.bot_data["profile_service"] = profile_service
    app.bot_data["event_service"] = event_service
    app.bot_data["registration_service"] = registration_service
    app.bot_data["stats_service"] = stats_service

    start_handlers.setup_handlers(app)
    profile_handlers.setup_handlers(app)
    events_handlers.setup_handlers(app)
    admin_handlers.setup_handlers(app)
    app.add_error_handler(on_error)
    logger.info(
        "Bot initialized (log_level=%s, db=%s, admins=%s, page_size=%s)",
        config.log_level,
        config.database_path,
        len(config.admin_ids),
        config.page_size,
    )
    return app


def main():
    application = build_application()
    logger.info("Starting polling...")
    application.run_polling()


if __name__ == "__main__":
    main()
