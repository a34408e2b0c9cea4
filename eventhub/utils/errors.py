from __future__ import annotations

from typing import Dict, Optional


class EventHubError(Exception):
    """Base class for domain errors. The message is safe to show to users."""

    default_message = "Request failed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationFailed(EventHubError):
    """Raised when input fails validation. Keeps per-field messages."""

    default_message = "Invalid input."

    def __init__(self, errors: Dict[str, str] | str, message: Optional[str] = None):
        if isinstance(errors, str):
            errors = {"__all__": errors}
        self.errors = dict(errors)
        if message is None:
            message = "; ".join(self.errors.values())
        super().__init__(message)


class NotFound(EventHubError):
    default_message = "Not found."


class PreferenceMismatch(EventHubError):
    default_message = "Cannot register for event type not in preferences."


class AlreadyRegistered(EventHubError):
    default_message = "Already registered for this event."


class NotRegistered(EventHubError):
    default_message = "Not registered for this event."


class EventFull(EventHubError):
    default_message = "Event is full."


class CapacityInvariantViolated(EventHubError):
    default_message = "Cannot reduce capacity below current number of registrations."


class EventAlreadyStarted(EventHubError):
    default_message = "Event has already started."


class Unauthenticated(EventHubError):
    default_message = "Could not identify the user."


class Forbidden(EventHubError):
    """Raised when user has insufficient permissions."""

    default_message = "Insufficient permissions."
