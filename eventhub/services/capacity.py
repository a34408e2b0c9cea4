"""Seat accounting derived from an event's registrations list.

There is no stored seat counter: the registrations list is the ledger, so
cancelling a registration releases its seat.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Event


def registration_count(event: "Event") -> int:
    return len(event.registrations)


def is_full(event: "Event") -> bool:
    return registration_count(event) >= event.capacity


def available_spots(event: "Event") -> int:
    return max(0, event.capacity - registration_count(event))


def can_hold(event: "Event", new_capacity: int) -> bool:
    """True when the current registrations fit into ``new_capacity``."""
    return registration_count(event) <= new_capacity
