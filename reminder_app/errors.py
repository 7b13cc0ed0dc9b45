"""
Reminder Service Errors

Every failure the core can produce is a ReminderError carrying a stable
code, a user-safe message and optional details for the logs.
"""

from typing import Any, Dict, Optional


class ReminderError(Exception):
    """Base exception for reminder service errors"""
    code = "REMINDER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.message = message
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)


class ReminderValidationError(ReminderError):
    """Rejected input; raised before any state change."""
    code = "VALIDATION_ERROR"


class ReminderNotFoundError(ReminderError):
    """Reminder is absent or owned by someone else; the two are indistinguishable."""
    code = "NOT_FOUND"

    def __init__(self, reminder_id: str):
        super().__init__("Reminder not found", {"reminder_id": reminder_id})


class InvalidTransitionError(ReminderError):
    """Requested status change is not allowed from the current status."""
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move reminder from '{current}' to '{target}'",
            {"current": current, "target": target},
        )


class SchedulingError(ReminderError):
    """Delay dispatch service unreachable, misconfigured or rejecting the job."""
    code = "SCHEDULING_ERROR"


class TransportError(ReminderError):
    """
    Notification transport failure.

    transient=True means the provider may succeed on a later attempt
    (network errors, timeouts, 5xx, 429); False means retrying cannot help.
    """
    code = "TRANSPORT_ERROR"

    def __init__(self, message: str, transient: bool, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.transient = transient


class ReminderConflictError(ReminderError):
    """Concurrent writers kept changing the reminder; the request was not applied."""
    code = "CONFLICT"

    def __init__(self, reminder_id: str):
        super().__init__("Reminder was modified concurrently, please retry", {"reminder_id": reminder_id})
