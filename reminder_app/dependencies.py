"""FastAPI dependency providers wiring services to the request session."""
from fastapi import Depends
from sqlmodel import Session

from reminder_app.config import Settings, get_settings
from reminder_app.dapr.client import DaprEventPublisher
from reminder_app.db.config import get_session
from reminder_app.delay_queue.client import DelayQueueClient
from reminder_app.providers.base_provider import NotificationSender
from reminder_app.services.delivery_dispatcher import DeliveryDispatcher
from reminder_app.services.entitlements import EntitlementService
from reminder_app.services.reminder_controller import ReminderController
from reminder_app.services.reminder_store import ReminderStore
from reminder_app.services.snooze_estimator import SmartSnoozeEstimator


def get_reminder_store(session: Session = Depends(get_session)) -> ReminderStore:
    return ReminderStore(session)


def get_delay_queue(settings: Settings = Depends(get_settings)) -> DelayQueueClient:
    return DelayQueueClient(settings)


def get_event_publisher(settings: Settings = Depends(get_settings)) -> DaprEventPublisher:
    return DaprEventPublisher(settings)


def get_notification_sender(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> NotificationSender:
    return NotificationSender.from_settings(settings, session)


def get_reminder_controller(
    store: ReminderStore = Depends(get_reminder_store),
    delay_queue: DelayQueueClient = Depends(get_delay_queue),
    publisher: DaprEventPublisher = Depends(get_event_publisher),
) -> ReminderController:
    """Dependency for getting ReminderController instance."""
    return ReminderController(store, delay_queue, publisher)


def get_snooze_estimator(session: Session = Depends(get_session)) -> SmartSnoozeEstimator:
    return SmartSnoozeEstimator(session, EntitlementService(session))


def get_delivery_dispatcher(
    store: ReminderStore = Depends(get_reminder_store),
    sender: NotificationSender = Depends(get_notification_sender),
    settings: Settings = Depends(get_settings),
    publisher: DaprEventPublisher = Depends(get_event_publisher),
) -> DeliveryDispatcher:
    """Dependency for getting DeliveryDispatcher instance."""
    return DeliveryDispatcher(store, sender, settings, publisher)
