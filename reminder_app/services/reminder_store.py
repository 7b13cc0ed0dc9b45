"""Reminder Store: persistence for reminders, delivery attempts and snooze history."""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, update
from sqlmodel import Session, col, select

from reminder_app.models.reminder import Reminder
from reminder_app.models.sent_log import SentLog
from reminder_app.models.snooze_history import SnoozeHistory
from reminder_app.models.user import User
from reminder_app.services.reminder_state import DELIVERABLE, ReminderStatus, sources_for
from reminder_app.utils.time_utils import to_local

logger = logging.getLogger(__name__)


class ReminderStore:
    """
    Row-level CRUD over reminders.

    Every mutation after creation is a single conditional UPDATE: it names
    the statuses the row must currently be in, and reports zero affected rows
    (None / False) when a concurrent request got there first. Callers treat
    that as a no-op, not an error.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: str,
        message: str,
        remind_at: datetime,
        tone: str = "motivational",
        notification_method: str = "email",
    ) -> Reminder:
        """Persist a new pending reminder with no job handle."""
        now = datetime.utcnow()
        reminder = Reminder(
            user_id=user_id,
            message=message,
            remind_at=remind_at,
            tone=tone,
            notification_method=notification_method,
            status=ReminderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reminder)
        self.session.commit()
        self.session.refresh(reminder)
        return reminder

    def get_by_id(self, reminder_id: str, user_id: str) -> Optional[Reminder]:
        """Get a reminder by ID, ensuring user ownership."""
        statement = (
            select(Reminder)
            .where(Reminder.id == reminder_id)
            .where(Reminder.user_id == user_id)
        )
        return self.session.exec(statement).first()

    def get_user(self, user_id: str) -> Optional[User]:
        """Owner profile (delivery addresses, timezone)."""
        return self.session.exec(select(User).where(User.id == user_id)).first()

    def get_for_delivery(self, reminder_id: str) -> Optional[Reminder]:
        """Unscoped read for the delivery callback, which carries no user identity."""
        return self.session.exec(select(Reminder).where(Reminder.id == reminder_id)).first()

    def list_by_user(self, user_id: str, status: Optional[ReminderStatus] = None) -> List[Reminder]:
        statement = select(Reminder).where(Reminder.user_id == user_id)
        if status is not None:
            statement = statement.where(col(Reminder.status) == status)
        statement = statement.order_by(col(Reminder.remind_at).asc())
        return list(self.session.exec(statement).all())

    def list_pending(self, user_id: Optional[str] = None, due_before: Optional[datetime] = None) -> List[Reminder]:
        """Reminders still awaiting delivery, soonest first."""
        statement = select(Reminder).where(col(Reminder.status).in_(list(DELIVERABLE)))
        if user_id is not None:
            statement = statement.where(Reminder.user_id == user_id)
        if due_before is not None:
            statement = statement.where(Reminder.remind_at <= due_before)
        statement = statement.order_by(col(Reminder.remind_at).asc())
        return list(self.session.exec(statement).all())

    def _conditional_update(self, reminder_id: str, conditions: Iterable, **values) -> int:
        values.setdefault("updated_at", datetime.utcnow())
        statement = (
            update(Reminder)
            .where(col(Reminder.id) == reminder_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(statement)
        self.session.commit()
        return result.rowcount

    def _status_guard(self, target: ReminderStatus, user_id: Optional[str]) -> list:
        conditions = [col(Reminder.status).in_(list(sources_for(target)))]
        if user_id is not None:
            conditions.append(col(Reminder.user_id) == user_id)
        return conditions

    def update_status(
        self,
        reminder_id: str,
        status: ReminderStatus,
        user_id: Optional[str] = None,
    ) -> Optional[Reminder]:
        """Move to `status` if reachable from the row's current status; None otherwise."""
        affected = self._conditional_update(
            reminder_id, self._status_guard(status, user_id), status=status
        )
        if not affected:
            return None
        return self.get_for_delivery(reminder_id)

    def update_schedule(
        self,
        reminder_id: str,
        user_id: str,
        remind_at: datetime,
        status: ReminderStatus = ReminderStatus.SNOOZED,
        expected_remind_at: Optional[datetime] = None,
    ) -> Optional[Reminder]:
        """
        Write the new delivery time and status in one statement.

        expected_remind_at makes the write a compare-and-set, so two
        concurrent snoozes cannot both advance from the same base time.
        """
        conditions = self._status_guard(status, user_id)
        if expected_remind_at is not None:
            conditions.append(col(Reminder.remind_at) == expected_remind_at)
        affected = self._conditional_update(
            reminder_id, conditions, remind_at=remind_at, status=status
        )
        if not affected:
            return None
        return self.get_by_id(reminder_id, user_id)

    def replace_job_handle(self, reminder_id: str, new_handle: Optional[str], expected_handle: Optional[str]) -> bool:
        """Compare-and-set the job handle; False means another writer replaced it first."""
        if expected_handle is None:
            guard = col(Reminder.delay_job_id).is_(None)
        else:
            guard = col(Reminder.delay_job_id) == expected_handle
        return self._conditional_update(reminder_id, [guard], delay_job_id=new_handle) == 1

    def claim_for_delivery(self, reminder_id: str, token: str, now: datetime, lease_seconds: int) -> bool:
        """Take the delivery lease if the reminder is deliverable and no live lease exists."""
        expired = now - timedelta(seconds=lease_seconds)
        conditions = [
            col(Reminder.status).in_(list(DELIVERABLE)),
            or_(col(Reminder.claim_token).is_(None), col(Reminder.claimed_at) < expired),
        ]
        return self._conditional_update(
            reminder_id, conditions, claim_token=token, claimed_at=now
        ) == 1

    def release_claim(self, reminder_id: str, token: str) -> bool:
        return self._conditional_update(
            reminder_id,
            [col(Reminder.claim_token) == token],
            claim_token=None,
            claimed_at=None,
        ) == 1

    def finish_delivery(self, reminder_id: str, token: str, status: ReminderStatus) -> bool:
        """
        Record the terminal delivery status while still holding the lease.

        False when the user moved the reminder out of a deliverable status
        mid-flight; the lease is released either way.
        """
        conditions = [col(Reminder.claim_token) == token] + self._status_guard(status, None)
        done = self._conditional_update(
            reminder_id, conditions, status=status, claim_token=None, claimed_at=None
        ) == 1
        if not done:
            self.release_claim(reminder_id, token)
        return done

    def record_delivery(
        self,
        reminder: Reminder,
        channel: str,
        provider_message_id: Optional[str],
        affirmation: Optional[str] = None,
    ) -> SentLog:
        entry = SentLog(
            reminder_id=reminder.id,
            user_id=reminder.user_id,
            channel=channel,
            affirmation=affirmation,
            success=True,
            provider_message_id=provider_message_id,
            sent_at=datetime.utcnow(),
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def list_deliveries(self, reminder_id: str) -> List[SentLog]:
        statement = select(SentLog).where(SentLog.reminder_id == reminder_id).order_by(col(SentLog.sent_at))
        return list(self.session.exec(statement).all())

    def count_deliveries(self, reminder_id: str) -> int:
        statement = select(func.count()).select_from(SentLog).where(SentLog.reminder_id == reminder_id)
        return self.session.exec(statement).one()

    def record_snooze(
        self,
        user_id: str,
        reminder_id: Optional[str],
        duration_minutes: int,
        reason: str = "user_action",
        tz_name: str = "UTC",
        at: Optional[datetime] = None,
    ) -> SnoozeHistory:
        """Append to the user's snooze history with local hour/weekday."""
        at = at or datetime.utcnow()
        local = to_local(at, tz_name)
        entry = SnoozeHistory(
            user_id=user_id,
            reminder_id=reminder_id,
            duration_minutes=duration_minutes,
            snooze_reason=reason,
            hour_of_day=local.hour,
            day_of_week=local.weekday(),
            created_at=at,
        )
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry
