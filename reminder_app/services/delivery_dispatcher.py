"""
Delivery Dispatcher

Handles the delayed-job callback for a reminder: decides whether the
reminder is still eligible, fans out to its channel(s), records the outcome
and moves the reminder to its terminal status.

The external scheduler delivers at least once, so every path before the
send is a cheap no-op for duplicates:

1. unknown reminder            -> not_found
2. status not deliverable      -> already_handled
3. callback from a stale job   -> stale_job
4. another callback holds lease -> in_flight

After the send, the outcome is one of sent, failed, retry (all channels
failed and at least one failure was transient, retry budget left) or
superseded (the user dismissed the reminder while it was being delivered).
A database error after the lease was taken rolls back, releases the lease
and also answers retry.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from reminder_app.config import Settings
from reminder_app.dapr.client import DaprEventPublisher
from reminder_app.models.reminder import CHANNELS, Reminder
from reminder_app.models.user import User
from reminder_app.providers.base_provider import NotificationSender, SendResult
from reminder_app.services.affirmations import generate_affirmation
from reminder_app.services.reminder_state import ReminderStatus, is_deliverable
from reminder_app.services.reminder_store import ReminderStore
from reminder_app.utils.logger import delivery_logger
from reminder_app.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

# A job may fire slightly before remind_at; anything earlier is an orphaned job
EARLY_FIRE_TOLERANCE = timedelta(seconds=60)


@dataclass
class DeliveryOutcome:
    """Result of one delivery callback."""
    reminder_id: str
    outcome: str
    status: Optional[str] = None
    retryable: bool = False
    channels: List[SendResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(result.success for result in self.channels)

    def to_dict(self):
        return {
            "success": not self.retryable,
            "delivered": self.delivered,
            "outcome": self.outcome,
            "status": self.status,
            "reminder_id": self.reminder_id,
            "channels": [
                {
                    "channel": r.channel,
                    "success": r.success,
                    "provider_message_id": r.provider_message_id,
                    "error": r.error,
                    "transient": r.transient,
                }
                for r in self.channels
            ],
        }


class DeliveryDispatcher:
    """Runs the delivery state machine for one reminder per callback."""

    def __init__(
        self,
        store: ReminderStore,
        sender: NotificationSender,
        settings: Settings,
        publisher: DaprEventPublisher,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.sender = sender
        self.settings = settings
        self.publisher = publisher
        self._now = now or datetime.utcnow

    def select_channels(self, reminder: Reminder) -> List[str]:
        """Channels to attempt, from the reminder's stored notification_method."""
        methods = [m.strip() for m in (reminder.notification_method or "email").split(",") if m.strip()]
        selected = []
        for method in methods:
            if method not in selected:
                selected.append(method)
        return selected

    def _is_stale_job(self, reminder: Reminder, job_id: Optional[str], now: datetime) -> bool:
        """A callback that names its job must match the stored handle and not fire early."""
        if not job_id:
            return False
        if reminder.delay_job_id and reminder.delay_job_id != job_id:
            return True
        return now < reminder.remind_at - EARLY_FIRE_TOLERANCE

    async def _send_one(self, channel: str, user: Optional[User], reminder: Reminder, affirmation: str) -> SendResult:
        if channel not in CHANNELS:
            return SendResult(channel, False, error=f"Unsupported channel '{channel}'")
        return await self.sender.send(channel, user, reminder, affirmation)

    async def _send_all(self, channels: List[str], user: Optional[User], reminder: Reminder, affirmation: str) -> List[SendResult]:
        raw = await asyncio.gather(
            *(self._send_one(channel, user, reminder, affirmation) for channel in channels),
            return_exceptions=True,
        )
        results = []
        for channel, result in zip(channels, raw):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error sending reminder {reminder.id} via {channel}: {result!r}")
                result = SendResult(channel, False, error="Unexpected transport error")
            results.append(result)
        return results

    async def dispatch(self, reminder_id: str, job_id: Optional[str] = None, retried: int = 0) -> DeliveryOutcome:
        """
        Process one delivery callback.

        Args:
            reminder_id: Reminder named in the callback payload
            job_id: Delay-queue message id of the firing job, if known
            retried: How many times the scheduler has already retried this callback

        Returns:
            DeliveryOutcome; retryable=True asks the scheduler to call again
        """
        reminder = self.store.get_for_delivery(reminder_id)
        if reminder is None:
            logger.info(f"Delivery callback for unknown reminder {reminder_id}; ignoring")
            metrics_collector.increment_counter("duplicate_callbacks_total")
            return DeliveryOutcome(reminder_id, "not_found")

        if not is_deliverable(reminder.status):
            logger.info(f"Reminder {reminder_id} already {reminder.status.value}; ignoring callback")
            metrics_collector.increment_counter("duplicate_callbacks_total")
            return DeliveryOutcome(reminder_id, "already_handled", reminder.status.value)

        now = self._now()
        if self._is_stale_job(reminder, job_id, now):
            logger.info(
                f"Ignoring stale job {job_id} for reminder {reminder_id} "
                f"(current job {reminder.delay_job_id}, due {reminder.remind_at.isoformat()})"
            )
            metrics_collector.increment_counter("duplicate_callbacks_total")
            return DeliveryOutcome(reminder_id, "stale_job", reminder.status.value)

        status = reminder.status.value
        token = str(uuid.uuid4())
        if not self.store.claim_for_delivery(reminder_id, token, now, self.settings.delivery_claim_ttl_seconds):
            current = self.store.get_for_delivery(reminder_id)
            logger.info(f"Reminder {reminder_id} is being delivered by another callback; ignoring")
            metrics_collector.increment_counter("duplicate_callbacks_total")
            return DeliveryOutcome(reminder_id, "in_flight", current.status.value if current else None)

        try:
            return await self._deliver(reminder, token, retried)
        except SQLAlchemyError as e:
            self._abandon_claim(reminder_id, token)
            metrics_collector.increment_counter("delivery_retries_total")
            delivery_logger.error(
                "Database error during delivery; asking scheduler to retry",
                reminder_id=reminder_id, retried=retried, error=str(e),
            )
            return DeliveryOutcome(reminder_id, "retry", status, retryable=True)
        except Exception:
            self._abandon_claim(reminder_id, token)
            raise

    def _abandon_claim(self, reminder_id: str, token: str) -> None:
        """Roll back the failed unit of work and give the lease back so a retry can claim it."""
        try:
            self.store.session.rollback()
            self.store.release_claim(reminder_id, token)
        except SQLAlchemyError:
            logger.exception(f"Could not release delivery claim on reminder {reminder_id}; it expires with its TTL")

    async def _deliver(self, reminder: Reminder, token: str, retried: int) -> DeliveryOutcome:
        with metrics_collector.time_operation("delivery_seconds"):
            user = self.store.get_user(reminder.user_id)
            affirmation = generate_affirmation(reminder.tone)
            results = await self._send_all(self.select_channels(reminder), user, reminder, affirmation)

        successes = [r for r in results if r.success]
        if successes:
            return self._finish_sent(reminder, token, successes, results, affirmation)
        return self._finish_failed(reminder, token, results, retried)

    def _finish_sent(self, reminder: Reminder, token: str, successes: List[SendResult], results: List[SendResult], affirmation: str) -> DeliveryOutcome:
        reminder_id = reminder.id
        for result in successes:
            self.store.record_delivery(reminder, result.channel, result.provider_message_id, affirmation)
        metrics_collector.increment_counter("deliveries_sent_total")

        for result in results:
            if not result.success:
                delivery_logger.warning(
                    "Channel failed on partially delivered reminder",
                    reminder_id=reminder_id, channel=result.channel,
                    error=result.error, transient=result.transient,
                )

        if not self.store.finish_delivery(reminder_id, token, ReminderStatus.SENT):
            current = self.store.get_for_delivery(reminder_id)
            status = current.status.value if current else None
            logger.info(f"Reminder {reminder_id} changed to {status} during delivery; keeping user status")
            return DeliveryOutcome(reminder_id, "superseded", status, channels=results)

        self.publisher.publish_reminder_delivered(
            {"reminder_id": reminder_id, "channels": [r.channel for r in successes]}, sent=True
        )
        return DeliveryOutcome(reminder_id, "sent", ReminderStatus.SENT.value, channels=results)

    def _finish_failed(self, reminder: Reminder, token: str, results: List[SendResult], retried: int) -> DeliveryOutcome:
        reminder_id = reminder.id
        errors = [{"channel": r.channel, "error": r.error, "transient": r.transient} for r in results]
        transient = any(r.transient for r in results)

        if transient and retried < self.settings.delivery_max_retries:
            self.store.release_claim(reminder_id, token)
            metrics_collector.increment_counter("delivery_retries_total")
            delivery_logger.warning(
                "Delivery failed transiently; asking scheduler to retry",
                reminder_id=reminder_id, retried=retried, errors=errors,
            )
            current = self.store.get_for_delivery(reminder_id)
            return DeliveryOutcome(
                reminder_id, "retry", current.status.value if current else None,
                retryable=True, channels=results,
            )

        metrics_collector.increment_counter("deliveries_failed_total")
        delivery_logger.error(
            "Delivery failed on every channel",
            reminder_id=reminder_id, retried=retried, errors=errors,
        )
        if not self.store.finish_delivery(reminder_id, token, ReminderStatus.FAILED):
            current = self.store.get_for_delivery(reminder_id)
            return DeliveryOutcome(reminder_id, "superseded", current.status.value if current else None, channels=results)

        self.publisher.publish_reminder_delivered({"reminder_id": reminder_id, "errors": errors}, sent=False)
        return DeliveryOutcome(reminder_id, "failed", ReminderStatus.FAILED.value, channels=results)
