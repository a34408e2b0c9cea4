from __future__ import annotations

from datetime import date

from eventhub.constants import EventType
from eventhub.models import Event, Registration
from eventhub.services import capacity


def _event(cap: int, registered: int) -> Event:
    return Event(
        event_id="e1",
        title="T",
        description="D",
        location="L",
        event_date=date(2099, 1, 1),
        event_time="10:00",
        type=EventType.SPORTS,
        capacity=cap,
        registrations=[Registration(id=i, event_id="e1", user_id=i) for i in range(registered)],
    )


def test_full_event_reports_no_spots_and_frees_one_on_removal():
    ev = _event(3, 3)
    assert ev.is_full is True
    assert ev.available_spots == 0

    ev.registrations.pop()
    assert ev.is_full is False
    assert ev.available_spots == 1


def test_available_spots_never_negative():
    ev = _event(1, 3)
    assert capacity.available_spots(ev) == 0
    assert capacity.is_full(ev)


def test_can_hold():
    ev = _event(5, 2)
    assert capacity.can_hold(ev, 2)
    assert not capacity.can_hold(ev, 1)
    assert capacity.registration_count(ev) == 2


def test_registration_for_finds_user():
    ev = _event(5, 2)
    assert ev.registration_for(1).user_id == 1
    assert ev.registration_for(42) is None
