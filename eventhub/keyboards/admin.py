from telegram import InlineKeyboardButton, InlineKeyboardMarkup


def admin_panel_kb():
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("📊 Dashboard", callback_data="admin_stats")],
            [InlineKeyboardButton("📅 Upcoming events", callback_data="admin_events_upcoming")],
            [InlineKeyboardButton("🕘 Past events", callback_data="admin_events_past")],
            [InlineKeyboardButton("📤 Export registrations", callback_data="admin_export_regs")],
        ]
    )


def back_to_panel_kb():
    return InlineKeyboardMarkup([[InlineKeyboardButton("⬅️ Back", callback_data="admin_panel")]])
