"""
Reminder Controller

User-facing reminder operations: create, snooze, dismiss, read.

The reminder row is the source of truth for when a reminder should fire.
Every operation writes it durably first and only then talks to the delay
queue; a scheduling failure is logged and counted, never surfaced to the
user. A missing external job is a recoverable gap.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from reminder_app.dapr.client import DaprEventPublisher
from reminder_app.delay_queue.client import DelayQueueClient
from reminder_app.errors import (
    ReminderConflictError,
    ReminderNotFoundError,
    ReminderValidationError,
    SchedulingError,
)
from reminder_app.models.reminder import CHANNELS, TONES, Reminder
from reminder_app.services.reminder_state import ReminderStatus, require_transition
from reminder_app.services.reminder_store import ReminderStore
from reminder_app.utils.metrics import metrics_collector
from reminder_app.utils.time_utils import to_utc_naive

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000
MAX_SNOOZE_MINUTES = 7 * 24 * 60
SNOOZE_ATTEMPTS = 3


def reminder_event_data(reminder: Reminder) -> dict:
    return {
        "reminder_id": reminder.id,
        "user_id": reminder.user_id,
        "remind_at": reminder.remind_at.isoformat(),
        "status": reminder.status.value,
        "notification_method": reminder.notification_method,
    }


class ReminderController:
    """Orchestrates the reminder store, the delay queue and lifecycle events."""

    def __init__(
        self,
        store: ReminderStore,
        delay_queue: DelayQueueClient,
        publisher: DaprEventPublisher,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.delay_queue = delay_queue
        self.publisher = publisher
        self._now = now or datetime.utcnow

    def _validate_create(self, message: str, remind_at: datetime, tone: str, notification_method: str) -> str:
        """Reject bad input; returns the notification method list without repeats."""
        if not message or not message.strip():
            raise ReminderValidationError("Message is required", {"field": "message"})
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ReminderValidationError(
                f"Message must be at most {MAX_MESSAGE_LENGTH} characters",
                {"field": "message", "length": len(message)},
            )
        if remind_at <= self._now():
            raise ReminderValidationError("Reminder time must be in the future", {"field": "remind_at"})
        if tone not in TONES:
            raise ReminderValidationError(f"Unknown tone '{tone}'", {"field": "tone", "allowed": list(TONES)})
        methods = []
        for method in (m.strip() for m in notification_method.split(",")):
            if method not in methods:
                methods.append(method)
        unknown = [m for m in methods if m not in CHANNELS]
        if unknown:
            raise ReminderValidationError(
                f"Unknown notification method '{notification_method}'",
                {"field": "notification_method", "allowed": list(CHANNELS)},
            )
        # Deduplicated, the longest accepted value is "email,push,in_app"
        return ",".join(methods)

    async def create(
        self,
        user_id: str,
        message: str,
        remind_at: datetime,
        tone: Optional[str] = None,
        notification_method: Optional[str] = None,
    ) -> Reminder:
        """
        Create a reminder and schedule its delivery callback.

        Raises:
            ReminderValidationError: bad input; nothing is persisted
        """
        remind_at = to_utc_naive(remind_at)
        tone = tone or "motivational"
        notification_method = notification_method or "email"
        notification_method = self._validate_create(message, remind_at, tone, notification_method)

        reminder = self.store.create(
            user_id=user_id,
            message=message.strip(),
            remind_at=remind_at,
            tone=tone,
            notification_method=notification_method,
        )
        metrics_collector.increment_counter("reminders_created_total")
        logger.info(f"Created reminder {reminder.id} for user {user_id} due {remind_at.isoformat()}")

        try:
            handle = await self.delay_queue.schedule(reminder.id, reminder.remind_at)
        except SchedulingError as e:
            metrics_collector.increment_counter("scheduling_failures_total")
            logger.error(f"Failed to schedule reminder {reminder.id}: {e.message} {e.details}")
            handle = None

        if handle:
            if self.store.replace_job_handle(reminder.id, handle, None):
                metrics_collector.increment_counter("reminders_scheduled_total")
            else:
                await self.delay_queue.cancel(handle)
            reminder = self.store.get_by_id(reminder.id, user_id)

        self.publisher.publish_reminder_created(reminder_event_data(reminder))
        return reminder

    def get(self, user_id: str, reminder_id: str) -> Reminder:
        reminder = self.store.get_by_id(reminder_id, user_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def list(self, user_id: str, status: Optional[str] = None) -> List[Reminder]:
        status_filter = None
        if status:
            try:
                status_filter = ReminderStatus(status)
            except ValueError:
                raise ReminderValidationError(f"Unknown status '{status}'", {"field": "status"})
        return self.store.list_by_user(user_id, status_filter)

    async def snooze(
        self,
        user_id: str,
        reminder_id: str,
        minutes: int,
        is_smart_suggestion: bool = False,
    ) -> Reminder:
        """
        Push the reminder back by `minutes` from its current fire time.

        The new time is written with a compare-and-set on the old remind_at,
        so concurrent snoozes stack instead of overwriting each other.

        Raises:
            ReminderValidationError: minutes outside (0, 10080]
            ReminderNotFoundError: not found or not owned by user_id
            InvalidTransitionError: reminder is dismissed
            ReminderConflictError: lost the compare-and-set on every attempt
        """
        if isinstance(minutes, bool) or not isinstance(minutes, int) or not 0 < minutes <= MAX_SNOOZE_MINUTES:
            raise ReminderValidationError(
                f"Snooze minutes must be between 1 and {MAX_SNOOZE_MINUTES}",
                {"field": "minutes", "value": minutes},
            )

        updated = None
        for _ in range(SNOOZE_ATTEMPTS):
            reminder = self.store.get_by_id(reminder_id, user_id)
            if reminder is None:
                raise ReminderNotFoundError(reminder_id)
            require_transition(reminder.status, ReminderStatus.SNOOZED)

            updated = self.store.update_schedule(
                reminder_id,
                user_id,
                reminder.remind_at + timedelta(minutes=minutes),
                ReminderStatus.SNOOZED,
                expected_remind_at=reminder.remind_at,
            )
            if updated is not None:
                break
        if updated is None:
            raise ReminderConflictError(reminder_id)

        metrics_collector.increment_counter("snoozes_total")
        logger.info(f"Snoozed reminder {reminder_id} by {minutes} minutes to {updated.remind_at.isoformat()}")
        self._record_snooze(user_id, reminder_id, minutes, is_smart_suggestion)

        await self._reschedule(updated)

        updated = self.store.get_by_id(reminder_id, user_id) or updated
        self.publisher.publish_reminder_snoozed(
            dict(reminder_event_data(updated), minutes=minutes, is_smart_suggestion=is_smart_suggestion)
        )
        return updated

    def _record_snooze(self, user_id: str, reminder_id: str, minutes: int, is_smart_suggestion: bool):
        user = self.store.get_user(user_id)
        try:
            self.store.record_snooze(
                user_id,
                reminder_id,
                minutes,
                reason="smart_suggestion" if is_smart_suggestion else "user_action",
                tz_name=user.timezone if user else "UTC",
                at=self._now(),
            )
        except SQLAlchemyError:
            self.store.session.rollback()
            logger.exception(f"Failed to record snooze history for reminder {reminder_id}")

    async def _reschedule(self, reminder: Reminder):
        old_handle = reminder.delay_job_id
        try:
            if old_handle:
                new_handle = await self.delay_queue.reschedule(old_handle, reminder.id, reminder.remind_at)
            else:
                new_handle = await self.delay_queue.schedule(reminder.id, reminder.remind_at)
        except SchedulingError as e:
            metrics_collector.increment_counter("scheduling_failures_total")
            logger.error(f"Failed to reschedule reminder {reminder.id}: {e.message} {e.details}")
            # The old job was cancelled (or is now stale); don't keep pointing at it
            if old_handle:
                self.store.replace_job_handle(reminder.id, None, old_handle)
            return

        if new_handle == old_handle:
            return
        if self.store.replace_job_handle(reminder.id, new_handle, old_handle):
            if new_handle:
                metrics_collector.increment_counter("reminders_scheduled_total")
        elif new_handle:
            logger.info(f"Job handle for reminder {reminder.id} replaced concurrently; cancelling job {new_handle}")
            await self.delay_queue.cancel(new_handle)

    async def dismiss(self, user_id: str, reminder_id: str) -> Reminder:
        """
        Mark the reminder dismissed, then cancel its pending job.

        Dismissing twice returns the dismissed reminder unchanged.

        Raises:
            ReminderNotFoundError: not found or not owned by user_id
            ReminderConflictError: status changed under us and the write was rejected
        """
        updated = self.store.update_status(reminder_id, ReminderStatus.DISMISSED, user_id)
        if updated is None:
            current = self.store.get_by_id(reminder_id, user_id)
            if current is None:
                raise ReminderNotFoundError(reminder_id)
            if current.status != ReminderStatus.DISMISSED:
                raise ReminderConflictError(reminder_id)
            logger.info(f"Reminder {reminder_id} already dismissed")
            return current

        metrics_collector.increment_counter("dismissals_total")
        logger.info(f"Dismissed reminder {reminder_id}")

        if updated.delay_job_id:
            cancelled = await self.delay_queue.cancel(updated.delay_job_id)
            if not cancelled:
                logger.info(f"Job {updated.delay_job_id} for reminder {reminder_id} was not cancelled; callback will no-op")

        self.publisher.publish_reminder_dismissed(reminder_event_data(updated))
        return updated
