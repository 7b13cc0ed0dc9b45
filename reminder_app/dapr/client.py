"""Dapr client for publishing reminder lifecycle events."""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from dapr.clients import DaprClient

from reminder_app.config import Settings

logger = logging.getLogger(__name__)


class DaprEventPublisher:
    """Publishes reminder lifecycle events to the broker via Dapr pub/sub."""

    def __init__(self, settings: Settings):
        self.enabled = settings.dapr_enabled
        self.pubsub_name = settings.dapr_pubsub_name
        self.topic = settings.dapr_topic
        if not self.enabled:
            logger.info("Dapr publishing disabled. Lifecycle events will only be logged.")

    def publish_event(self, event_type: str, data: Dict[str, Any], source: str = "reminder-service") -> Optional[str]:
        """
        Publish an event envelope; failures are logged, never raised.

        Returns:
            The event id, or None if publishing failed.
        """
        event_envelope = {
            "event_id": str(uuid.uuid4()),
            "type": event_type,
            "timestamp": datetime.utcnow().isoformat(),
            "source": source,
            "data": data
        }

        if not self.enabled:
            logger.info(f"[DEV MODE] Would publish to topic '{self.topic}': {event_type} with data {data}")
            return event_envelope["event_id"]

        try:
            with DaprClient() as client:
                client.publish_event(
                    pubsub_name=self.pubsub_name,
                    topic_name=self.topic,
                    data=json.dumps(event_envelope, default=str),
                    data_content_type="application/json"
                )
            logger.info(f"Published event {event_type} to topic {self.topic}")
            return event_envelope["event_id"]
        except Exception as e:
            logger.error(f"Failed to publish event {event_type} to topic {self.topic}: {str(e)}")
            return None

    def publish_reminder_created(self, reminder_data: Dict[str, Any]):
        return self.publish_event("reminder.created", reminder_data)

    def publish_reminder_snoozed(self, reminder_data: Dict[str, Any]):
        return self.publish_event("reminder.snoozed", reminder_data)

    def publish_reminder_dismissed(self, reminder_data: Dict[str, Any]):
        return self.publish_event("reminder.dismissed", reminder_data)

    def publish_reminder_delivered(self, reminder_data: Dict[str, Any], sent: bool):
        """reminder.sent or reminder.failed, after a terminal delivery outcome."""
        return self.publish_event("reminder.sent" if sent else "reminder.failed", reminder_data)
