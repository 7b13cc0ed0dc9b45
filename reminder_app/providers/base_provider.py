"""
Notification Providers.

One provider per delivery channel, plus the NotificationSender facade the
dispatcher calls. Providers raise TransportError; the sender turns every
outcome into a SendResult that says whether a retry could help.
"""

import abc
import html
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from reminder_app.config import Settings
from reminder_app.errors import TransportError
from reminder_app.models.in_app_notification import InAppNotification
from reminder_app.models.reminder import Reminder
from reminder_app.models.user import User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
NOTIFICATION_TITLE = "Reminder"
EMAIL_SUBJECT = "Reminder from FollowUpTimer"


@dataclass
class SendResult:
    """Outcome of one channel attempt."""
    channel: str
    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    transient: bool = False


def raise_for_transport_status(response: httpx.Response, provider: str):
    """429 and 5xx are transient; any other non-2xx is permanent."""
    if response.status_code < 300:
        return
    transient = response.status_code == 429 or response.status_code >= 500
    raise TransportError(
        f"{provider} returned HTTP {response.status_code}",
        transient=transient,
        details={"body": response.text[:200]},
    )


class NotificationProvider(abc.ABC):
    """Abstract base class for notification providers."""

    channel = ""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @abc.abstractmethod
    def recipient_for(self, user: Optional[User], reminder: Reminder) -> Optional[str]:
        """Address for this channel, or None if the user has none."""

    @abc.abstractmethod
    def validate_recipient(self, recipient: str) -> bool:
        """
        Validate recipient format.

        Args:
            recipient: Recipient identifier

        Returns:
            True if valid, False otherwise
        """

    @abc.abstractmethod
    async def send(self, recipient: str, reminder: Reminder, affirmation: str) -> Optional[str]:
        """
        Send a notification.

        Returns:
            Provider message id, if the provider returns one

        Raises:
            TransportError: on any failure, flagged transient or permanent
        """

    async def _post_json(self, url: str, payload: dict, headers: Dict[str, str]) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.channel} transport unreachable: {e}", transient=True) from e

        raise_for_transport_status(response, self.channel)
        try:
            return response.json()
        except ValueError:
            return {}


class EmailProvider(NotificationProvider):
    """Email notification provider (Resend HTTP API)."""

    channel = "email"

    def recipient_for(self, user: Optional[User], reminder: Reminder) -> Optional[str]:
        return user.email if user else None

    def validate_recipient(self, recipient: str) -> bool:
        """Validate email address format."""
        return bool(EMAIL_PATTERN.match(recipient))

    async def send(self, recipient: str, reminder: Reminder, affirmation: str) -> Optional[str]:
        if not self.settings.resend_api_key:
            raise TransportError("Email transport is not configured", transient=False)

        body = await self._post_json(
            f"{self.settings.resend_api_url.rstrip('/')}/emails",
            {
                "from": self.settings.resend_from,
                "to": recipient,
                "subject": EMAIL_SUBJECT,
                "text": f"{affirmation}\n\nReminder: {reminder.message}",
                "html": (
                    '<div style="font-family:system-ui,sans-serif;line-height:1.5">'
                    f'<p style="font-size:16px;margin:0 0 12px">{html.escape(affirmation)}</p>'
                    f'<p style="margin:0 0 8px"><strong>Reminder:</strong> {html.escape(reminder.message)}</p>'
                    '<p style="font-size:12px;color:#666">Sent by FollowUpTimer</p>'
                    '</div>'
                ),
            },
            {"Authorization": f"Bearer {self.settings.resend_api_key}"},
        )
        logger.info(f"Sent reminder {reminder.id} by email")
        return body.get("id")


class PushProvider(NotificationProvider):
    """Push notification provider (HTTP push gateway)."""

    channel = "push"

    def recipient_for(self, user: Optional[User], reminder: Reminder) -> Optional[str]:
        return user.push_token if user else None

    def validate_recipient(self, recipient: str) -> bool:
        """Validate device token format."""
        return len(recipient) >= 10

    async def send(self, recipient: str, reminder: Reminder, affirmation: str) -> Optional[str]:
        if not self.settings.push_service_url:
            raise TransportError("Push transport is not configured", transient=False)

        headers = {}
        if self.settings.push_service_token:
            headers["Authorization"] = f"Bearer {self.settings.push_service_token}"
        body = await self._post_json(
            self.settings.push_service_url,
            {
                "to": recipient,
                "title": NOTIFICATION_TITLE,
                "body": f"{affirmation}\n\n{reminder.message}",
                "data": {"reminder_id": reminder.id},
            },
            headers,
        )
        logger.info(f"Sent reminder {reminder.id} by push")
        return body.get("id")


class InAppProvider(NotificationProvider):
    """In-app inbox provider; writes a notification row."""

    channel = "in_app"

    def __init__(self, settings: Settings, session: Session):
        super().__init__(settings)
        self.session = session

    def recipient_for(self, user: Optional[User], reminder: Reminder) -> Optional[str]:
        return reminder.user_id

    def validate_recipient(self, recipient: str) -> bool:
        return bool(recipient)

    async def send(self, recipient: str, reminder: Reminder, affirmation: str) -> Optional[str]:
        notification = InAppNotification(
            user_id=recipient,
            reminder_id=reminder.id,
            title=NOTIFICATION_TITLE,
            message=reminder.message,
            affirmation=affirmation,
        )
        try:
            self.session.add(notification)
            self.session.commit()
            self.session.refresh(notification)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise TransportError(f"Failed to store in-app notification: {e}", transient=True) from e
        return f"in_app_{notification.id}"


class NotificationSender:
    """Routes a reminder to the provider for a channel and normalises the outcome."""

    def __init__(self, providers: Dict[str, NotificationProvider]):
        self.providers = providers

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NotificationSender":
        return cls({
            "email": EmailProvider(settings, transport),
            "push": PushProvider(settings, transport),
            "in_app": InAppProvider(settings, session),
        })

    async def send(self, channel: str, user: Optional[User], reminder: Reminder, affirmation: str) -> SendResult:
        provider = self.providers.get(channel)
        if provider is None:
            return SendResult(channel, False, error=f"Unsupported channel '{channel}'")

        recipient = provider.recipient_for(user, reminder)
        if not recipient or not provider.validate_recipient(recipient):
            return SendResult(channel, False, error=f"No valid {channel} recipient for user {reminder.user_id}")

        try:
            message_id = await provider.send(recipient, reminder, affirmation)
        except TransportError as e:
            return SendResult(channel, False, error=e.message, transient=e.transient)
        return SendResult(channel, True, provider_message_id=message_id)
