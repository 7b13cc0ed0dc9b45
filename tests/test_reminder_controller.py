from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from conftest import StubDelayQueue
from reminder_app.errors import (
    InvalidTransitionError,
    ReminderNotFoundError,
    ReminderValidationError,
)
from reminder_app.models.snooze_history import SnoozeHistory
from reminder_app.services.delivery_dispatcher import DeliveryDispatcher
from reminder_app.services.reminder_controller import ReminderController
from reminder_app.services.reminder_state import ReminderStatus
from reminder_app.utils.metrics import metrics_collector

NOW = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def controller(store, delay_queue, publisher):
    return ReminderController(store, delay_queue, publisher, now=lambda: NOW)


@pytest.mark.asyncio
async def test_create_schedules_and_stores_handle(controller, delay_queue, publisher):
    reminder = await controller.create("user-1", "Call the bank", NOW + timedelta(hours=1))

    assert reminder.status == ReminderStatus.PENDING
    assert reminder.delay_job_id == "msg_1"
    assert delay_queue.scheduled == [(reminder.id, NOW + timedelta(hours=1))]
    assert publisher.types == ["reminder.created"]


@pytest.mark.asyncio
async def test_create_normalises_aware_time_to_utc(controller):
    fire_at = datetime(2026, 3, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    reminder = await controller.create("user-1", "Standup", fire_at)

    assert reminder.remind_at == datetime(2026, 3, 2, 10, 0)


@pytest.mark.asyncio
async def test_scheduling_failure_does_not_block_creation(store, publisher):
    controller = ReminderController(store, StubDelayQueue(fail=True), publisher, now=lambda: NOW)

    reminder = await controller.create("user-1", "Call the bank", NOW + timedelta(hours=1))

    persisted = store.get_by_id(reminder.id, "user-1")
    assert persisted.status == ReminderStatus.PENDING
    assert persisted.delay_job_id is None
    assert metrics_collector.get_metrics()["counters"]["scheduling_failures_total"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"message": "", "remind_at": NOW + timedelta(hours=1)},
    {"message": "   ", "remind_at": NOW + timedelta(hours=1)},
    {"message": "x" * 1001, "remind_at": NOW + timedelta(hours=1)},
    {"message": "Late", "remind_at": NOW},
    {"message": "Late", "remind_at": NOW - timedelta(minutes=1)},
    {"message": "Tone", "remind_at": NOW + timedelta(hours=1), "tone": "sarcastic"},
    {"message": "Method", "remind_at": NOW + timedelta(hours=1), "notification_method": "sms"},
])
async def test_invalid_create_is_rejected_without_state_change(controller, store, delay_queue, kwargs):
    with pytest.raises(ReminderValidationError):
        await controller.create("user-1", **kwargs)

    assert store.list_by_user("user-1") == []
    assert delay_queue.scheduled == []


@pytest.mark.asyncio
async def test_repeated_notification_methods_are_stored_once(controller, store):
    reminder = await controller.create(
        "user-1", "Call the bank", NOW + timedelta(hours=1), notification_method="email,push,in_app,email,push"
    )

    assert reminder.notification_method == "email,push,in_app"
    assert store.get_for_delivery(reminder.id).notification_method == "email,push,in_app"


@pytest.mark.asyncio
async def test_snooze_advances_from_current_fire_time(controller, store, delay_queue, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    snoozed = await controller.snooze(user.id, reminder.id, 15)

    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.remind_at == NOW + timedelta(hours=1, minutes=15)
    assert delay_queue.cancelled == ["msg_1"]
    assert snoozed.delay_job_id == "msg_2"


@pytest.mark.asyncio
async def test_repeated_snoozes_stack(controller, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    await controller.snooze(user.id, reminder.id, 10)
    snoozed = await controller.snooze(user.id, reminder.id, 20)

    assert snoozed.remind_at == NOW + timedelta(hours=1, minutes=30)


@pytest.mark.asyncio
async def test_snooze_records_history(controller, session, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    await controller.snooze(user.id, reminder.id, 30, is_smart_suggestion=True)

    entries = session.exec(select(SnoozeHistory).where(SnoozeHistory.reminder_id == reminder.id)).all()
    assert len(entries) == 1
    assert entries[0].duration_minutes == 30
    assert entries[0].snooze_reason == "smart_suggestion"
    assert entries[0].hour_of_day == 9


@pytest.mark.asyncio
async def test_snooze_survives_scheduling_failure(store, publisher, user):
    queue = StubDelayQueue()
    controller = ReminderController(store, queue, publisher, now=lambda: NOW)
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))
    queue.fail = True

    snoozed = await controller.snooze(user.id, reminder.id, 15)

    assert snoozed.remind_at == NOW + timedelta(hours=1, minutes=15)
    assert snoozed.status == ReminderStatus.SNOOZED
    # The old job handle is no longer trusted
    assert snoozed.delay_job_id is None


@pytest.mark.asyncio
@pytest.mark.parametrize("minutes", [0, -5, 10081])
async def test_snooze_minutes_out_of_range(controller, user, minutes):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    with pytest.raises(ReminderValidationError):
        await controller.snooze(user.id, reminder.id, minutes)


@pytest.mark.asyncio
async def test_snooze_of_other_users_reminder_is_not_found(controller, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    with pytest.raises(ReminderNotFoundError):
        await controller.snooze("intruder", reminder.id, 15)


@pytest.mark.asyncio
async def test_dismissed_reminder_cannot_be_snoozed(controller, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))
    await controller.dismiss(user.id, reminder.id)

    with pytest.raises(InvalidTransitionError):
        await controller.snooze(user.id, reminder.id, 15)


@pytest.mark.asyncio
async def test_dismiss_cancels_job_and_is_idempotent(controller, delay_queue, publisher, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))

    dismissed = await controller.dismiss(user.id, reminder.id)
    again = await controller.dismiss(user.id, reminder.id)

    assert dismissed.status == ReminderStatus.DISMISSED
    assert again.status == ReminderStatus.DISMISSED
    assert delay_queue.cancelled == ["msg_1"]
    assert publisher.types == ["reminder.created", "reminder.dismissed"]


@pytest.mark.asyncio
async def test_dismiss_unknown_reminder(controller):
    with pytest.raises(ReminderNotFoundError):
        await controller.dismiss("user-1", "missing")


@pytest.mark.asyncio
async def test_dismiss_is_terminal_for_delivery(controller, store, sender, settings, publisher, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))
    await controller.dismiss(user.id, reminder.id)
    dispatcher = DeliveryDispatcher(store, sender, settings, publisher, now=lambda: NOW + timedelta(hours=1))

    outcome = await dispatcher.dispatch(reminder.id, job_id="msg_1")

    assert outcome.outcome == "already_handled"
    assert store.get_for_delivery(reminder.id).status == ReminderStatus.DISMISSED
    assert sender.calls == []


@pytest.mark.asyncio
async def test_create_snooze_deliver_replay(controller, store, sender, settings, publisher, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(minutes=60), notification_method="email")
    assert reminder.status == ReminderStatus.PENDING

    snoozed = await controller.snooze(user.id, reminder.id, 15)
    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.remind_at == NOW + timedelta(minutes=75)

    fire_time = NOW + timedelta(minutes=75)
    dispatcher = DeliveryDispatcher(store, sender, settings, publisher, now=lambda: fire_time)

    first = await dispatcher.dispatch(reminder.id, job_id=snoozed.delay_job_id)
    assert first.outcome == "sent"
    assert store.get_for_delivery(reminder.id).status == ReminderStatus.SENT
    assert [d.channel for d in store.list_deliveries(reminder.id)] == ["email"]

    replay = await dispatcher.dispatch(reminder.id, job_id=snoozed.delay_job_id)
    assert replay.outcome == "already_handled"
    assert store.count_deliveries(reminder.id) == 1


@pytest.mark.asyncio
async def test_sent_reminder_can_be_snoozed_again(controller, store, sender, settings, publisher, user):
    reminder = await controller.create(user.id, "Call the bank", NOW + timedelta(hours=1))
    dispatcher = DeliveryDispatcher(store, sender, settings, publisher, now=lambda: NOW + timedelta(hours=1))
    await dispatcher.dispatch(reminder.id)

    snoozed = await controller.snooze(user.id, reminder.id, 10)

    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.remind_at == NOW + timedelta(hours=1, minutes=10)


def test_get_and_list(controller, store):
    reminder = store.create("user-1", "Call the bank", NOW + timedelta(hours=1))

    assert controller.get("user-1", reminder.id).id == reminder.id
    assert [r.id for r in controller.list("user-1", "pending")] == [reminder.id]
    with pytest.raises(ReminderNotFoundError):
        controller.get("user-2", reminder.id)
    with pytest.raises(ReminderValidationError):
        controller.list("user-1", "archived")
