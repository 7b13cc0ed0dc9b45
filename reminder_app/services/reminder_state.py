"""
Reminder lifecycle state machine.

The single transition table consulted by the delivery dispatcher and the
snooze/dismiss controller. Conditional updates in the store are built from
sources_for(), so the table is also the concurrency contract: a write only
lands if the row is still in a status the target is reachable from.
"""

from enum import Enum
from typing import Dict, FrozenSet

from reminder_app.errors import InvalidTransitionError


class ReminderStatus(str, Enum):
    PENDING = "pending"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"
    SENT = "sent"
    FAILED = "failed"


TRANSITIONS: Dict[ReminderStatus, FrozenSet[ReminderStatus]] = {
    ReminderStatus.PENDING: frozenset({
        ReminderStatus.SENT,
        ReminderStatus.FAILED,
        ReminderStatus.SNOOZED,
        ReminderStatus.DISMISSED,
    }),
    ReminderStatus.SNOOZED: frozenset({
        ReminderStatus.SENT,
        ReminderStatus.FAILED,
        ReminderStatus.SNOOZED,
        ReminderStatus.DISMISSED,
    }),
    # Terminal for the delivery cycle; a user snooze opens a new one.
    ReminderStatus.SENT: frozenset({ReminderStatus.SNOOZED, ReminderStatus.DISMISSED}),
    ReminderStatus.FAILED: frozenset({ReminderStatus.SNOOZED, ReminderStatus.DISMISSED}),
    ReminderStatus.DISMISSED: frozenset(),
}

DELIVERABLE: FrozenSet[ReminderStatus] = frozenset({ReminderStatus.PENDING, ReminderStatus.SNOOZED})


def _coerce(status) -> ReminderStatus:
    return status if isinstance(status, ReminderStatus) else ReminderStatus(status)


def can_transition(current, target) -> bool:
    """True when `target` is reachable from `current` in one step."""
    return _coerce(target) in TRANSITIONS[_coerce(current)]


def require_transition(current, target) -> ReminderStatus:
    """Return the target status or raise InvalidTransitionError."""
    current, target = _coerce(current), _coerce(target)
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    return target


def sources_for(target) -> FrozenSet[ReminderStatus]:
    """All statuses from which `target` can be entered."""
    target = _coerce(target)
    return frozenset(s for s, targets in TRANSITIONS.items() if target in targets)


def is_deliverable(status) -> bool:
    return _coerce(status) in DELIVERABLE


def is_terminal(status) -> bool:
    """No automatic delivery happens from this status."""
    return not is_deliverable(status)
