from __future__ import annotations

from datetime import datetime, timezone

import pytest

from eventhub.constants import EventType, Role
from eventhub.handlers import admin as admin_handlers
from eventhub.handlers import events as events_handlers
from eventhub.handlers import profile as profile_handlers
from eventhub.handlers import start as start_handlers
from eventhub.services.messaging import MENU_LABEL_EVENTS, MENU_LABEL_PREFERENCES
from eventhub.utils.errors import ValidationFailed

from .conftest import event_fields, make_callback_update, make_message_update, make_user


def _callback_datas(markup):
    return [btn.callback_data for row in markup.inline_keyboard for btn in row]


@pytest.mark.asyncio
async def test_start_creates_user_and_sends_menu(context, services):
    update = make_message_update(1, text="/start", username="u", full_name="User One")
    await start_handlers.start(update, context)
    profile = await services.profile.get_profile(1)
    assert profile is not None and profile.username == "u"
    assert "Preferences" in context.bot.sent_messages[-1]["text"]


@pytest.mark.asyncio
async def test_list_events_empty(context):
    update = make_message_update(1, text=MENU_LABEL_EVENTS)
    await events_handlers.list_events(update, context)
    assert "no upcoming events" in update.message.replies[-1]["text"].lower()


@pytest.mark.asyncio
async def test_list_events_paginates(context, services):
    for day in ("2024-06-10", "2024-06-11", "2024-06-12"):
        await services.event.create_event(event_fields(event_date=day), 1)

    update = make_message_update(1, text=MENU_LABEL_EVENTS)
    await events_handlers.list_events(update, context)
    markup = update.message.replies[-1]["reply_markup"]
    datas = _callback_datas(markup)
    assert len([d for d in datas if d.startswith("event_view_")]) == 2
    assert "events_page_2" in datas

    page_update = make_callback_update(1, data="events_page_2")
    await events_handlers.events_page(page_update, context)
    assert "page 2/2" in page_update.callback_query.edits[-1]["text"]


@pytest.mark.asyncio
async def test_view_and_register_flow(context, services, social_event, social_user):
    view = make_callback_update(1, data=f"event_view_{social_event.event_id}")
    await events_handlers.view_event(view, context)
    assert f"event_register_{social_event.event_id}" in _callback_datas(view.callback_query.edits[-1]["reply_markup"])

    reg = make_callback_update(1, data=f"event_register_{social_event.event_id}")
    await events_handlers.register_callback(reg, context)
    assert "registered" in reg.callback_query.edits[-1]["text"].lower()
    assert await services.registration.registration_status(social_event.event_id, 1)

    again = make_callback_update(1, data=f"event_register_{social_event.event_id}")
    await events_handlers.register_callback(again, context)
    assert again.callback_query.edits[-1]["text"] == "⚠️ Already registered for this event."

    view2 = make_callback_update(1, data=f"event_view_{social_event.event_id}")
    await events_handlers.view_event(view2, context)
    assert f"event_cancel_{social_event.event_id}" in _callback_datas(view2.callback_query.edits[-1]["reply_markup"])


@pytest.mark.asyncio
async def test_register_callback_preference_mismatch(context, services, social_event):
    await make_user(services, 2, EventType.SPORTS)
    update = make_callback_update(2, data=f"event_register_{social_event.event_id}")
    await events_handlers.register_callback(update, context)
    assert "preferences" in update.callback_query.edits[-1]["text"]


@pytest.mark.asyncio
async def test_cancel_callback(context, services, social_event, social_user):
    await services.registration.register(social_event.event_id, 1)
    update = make_callback_update(1, data=f"event_cancel_{social_event.event_id}")
    await events_handlers.cancel_callback(update, context)
    assert "cancelled" in update.callback_query.edits[-1]["text"].lower()

    again = make_callback_update(1, data=f"event_cancel_{social_event.event_id}")
    await events_handlers.cancel_callback(again, context)
    assert again.callback_query.edits[-1]["text"] == "⚠️ Not registered for this event."


@pytest.mark.asyncio
async def test_my_and_past_events(context, services, clock, social_event, social_user):
    update = make_message_update(1)
    await events_handlers.list_my_events(update, context)
    assert "no registrations" in update.message.replies[-1]["text"].lower()

    await services.registration.register(social_event.event_id, 1)
    await events_handlers.list_my_events(update, context)
    assert _callback_datas(update.message.replies[-1]["reply_markup"])[0] == f"event_view_{social_event.event_id}"

    clock.now = datetime(2024, 8, 1, tzinfo=timezone.utc)
    await events_handlers.list_past_events(update, context)
    assert social_event.title in update.message.replies[-1]["text"]


@pytest.mark.asyncio
async def test_preferences_toggle(context, services):
    await services.profile.ensure_user(1, "u", "User One")
    update = make_message_update(1, text=MENU_LABEL_PREFERENCES)
    await profile_handlers.show_preferences(update, context)
    assert "pref_toggle_Sports" in _callback_datas(update.message.replies[-1]["reply_markup"])

    toggle = make_callback_update(1, data="pref_toggle_Sports")
    await profile_handlers.toggle_preference(toggle, context)
    assert (await services.profile.get_profile(1)).preferences == [EventType.SPORTS]
    assert "Sports" in toggle.callback_query.edits[-1]["text"]


def test_parse_new_and_edit_event_commands():
    fields = admin_handlers.parse_new_event("A | B | C | 2024-07-01 | 10:00 | Sports | 5")
    assert fields["event_date"] == "2024-07-01"
    assert fields["capacity"] == "5"
    with pytest.raises(ValidationFailed):
        admin_handlers.parse_new_event("A | B")

    event_id, changes = admin_handlers.parse_edit_event("event_1 capacity=10; time=09:00")
    assert event_id == "event_1"
    assert changes == {"capacity": "10", "event_time": "09:00"}
    with pytest.raises(ValidationFailed):
        admin_handlers.parse_edit_event("event_1")


@pytest.mark.asyncio
async def test_admin_create_edit_delete(context, services):
    await services.profile.ensure_user(100, "admin", "Admin")
    await services.profile.assign_role(100, Role.ADMIN)

    create = make_message_update(100, text="/newevent Hack | Build | Lab | 2024-07-05 | 9:00 | Workshop | 2")
    await admin_handlers.new_event_cmd(create, context)
    assert create.message.replies[-1]["text"].startswith("✅ Event created")
    event = (await services.event.list_events("all"))[0]
    assert event.creator_id == 100 and event.event_time == "09:00"

    bad = make_message_update(100, text=f"/editevent {event.event_id} capacity=0")
    await admin_handlers.edit_event_cmd(bad, context)
    assert "Capacity must be at least 1" in bad.message.replies[-1]["text"]

    delete = make_message_update(100, text=f"/deleteevent {event.event_id}")
    await admin_handlers.delete_event_cmd(delete, context)
    assert "removed" in delete.message.replies[-1]["text"]
    assert await services.event.list_events("all") == []


@pytest.mark.asyncio
async def test_admin_kick_and_stats(context, services, social_event, social_user):
    await services.profile.ensure_user(100, "admin", "Admin")
    await services.profile.assign_role(100, Role.ADMIN)
    await services.registration.register(social_event.event_id, 1)

    regs = make_message_update(100, text=f"/regs {social_event.event_id}")
    await admin_handlers.registrations_cmd(regs, context)
    assert "User 1" in regs.message.replies[-1]["text"]

    kick = make_message_update(100, text=f"/kick {social_event.event_id} 1")
    await admin_handlers.kick_cmd(kick, context)
    assert "cancelled" in kick.message.replies[-1]["text"]
    assert await services.registration.registration_status(social_event.event_id, 1) is None

    stats = make_message_update(100, text="/stats")
    await admin_handlers.stats_cmd(stats, context)
    assert "Events: 1 (upcoming: 1)" in stats.message.replies[-1]["text"]


@pytest.mark.asyncio
async def test_admin_export_sends_document(context, services, social_event, social_user):
    await services.profile.ensure_user(100, "admin", "Admin")
    await services.profile.assign_role(100, Role.ADMIN)
    await services.registration.register(social_event.event_id, 1)

    update = make_callback_update(100, data="admin_export_regs")
    await admin_handlers.export_registrations(update, context)
    assert context.bot.sent_documents[-1]["filename"] == "registrations.xlsx"
