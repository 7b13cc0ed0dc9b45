"""Delay-queue client for the external delayed-callback service (QStash API)."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx

from reminder_app.config import Settings
from reminder_app.errors import SchedulingError

logger = logging.getLogger(__name__)

MIN_DELAY = timedelta(seconds=1)


def to_unix(moment: datetime) -> int:
    """Unix seconds for a naive-UTC or aware datetime."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class DelayQueueClient:
    """
    Schedules, cancels and reschedules reminder delivery callbacks.

    Job handles are weak references: the service is the source of truth for
    whether a job still exists, so cancel() reports False instead of raising
    for stale or unknown handles.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.enabled = settings.delay_queue_enabled
        self._transport = transport
        self._now = now or datetime.utcnow
        if not self.enabled:
            logger.info("Delay queue disabled; callbacks will not be scheduled in this environment")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.qstash_url.rstrip("/"),
            headers={"Authorization": f"Bearer {self.settings.qstash_token}"},
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def schedule(self, reminder_id: str, fire_at: datetime, callback_url: Optional[str] = None) -> Optional[str]:
        """
        Ask the service to POST {"reminderId": ...} to the callback no earlier than fire_at.

        Returns:
            The job handle, or None when the adapter is disabled.

        Raises:
            SchedulingError: misconfiguration, network failure or rejected publish
        """
        if not self.enabled:
            logger.debug(f"Skipping scheduling for reminder {reminder_id}: delay queue disabled")
            return None

        target = callback_url or self.settings.callback_url
        if not self.settings.qstash_token or not target:
            missing = [name for name, value in (("QSTASH_TOKEN", self.settings.qstash_token), ("APP_URL", target)) if not value]
            raise SchedulingError(
                "Delay queue is not configured",
                {"reminder_id": reminder_id, "missing": missing},
            )

        earliest = self._now() + MIN_DELAY
        not_before = to_unix(max(fire_at, earliest))

        try:
            async with self._client() as client:
                response = await client.post(
                    f"/v2/publish/{target}",
                    json={"reminderId": reminder_id},
                    headers={"Upstash-Not-Before": str(not_before)},
                )
        except httpx.HTTPError as e:
            raise SchedulingError(
                f"Delay queue unreachable: {e}",
                {"reminder_id": reminder_id},
            ) from e

        if response.status_code >= 300:
            raise SchedulingError(
                f"Delay queue rejected publish with HTTP {response.status_code}",
                {"reminder_id": reminder_id, "body": response.text[:200]},
            )

        try:
            job_id = response.json()["messageId"]
        except (ValueError, KeyError, TypeError) as e:
            raise SchedulingError(
                "Delay queue returned no message id",
                {"reminder_id": reminder_id},
            ) from e

        logger.info(f"Scheduled reminder {reminder_id} as job {job_id} (not before {not_before})")
        return job_id

    async def cancel(self, job_handle: Optional[str]) -> bool:
        """Best-effort delete; False when the handle is missing, stale or unreachable."""
        if not job_handle or not self.enabled or not self.settings.qstash_token:
            return False

        try:
            async with self._client() as client:
                response = await client.delete(f"/v2/messages/{job_handle}")
        except httpx.HTTPError as e:
            logger.warning(f"Failed to cancel job {job_handle}: {e}")
            return False

        if response.status_code == 404:
            logger.info(f"Job {job_handle} already consumed or removed")
            return False
        if response.status_code >= 300:
            logger.warning(f"Cancel of job {job_handle} returned HTTP {response.status_code}")
            return False
        return True

    async def reschedule(
        self,
        old_handle: Optional[str],
        reminder_id: str,
        new_fire_at: datetime,
        callback_url: Optional[str] = None,
    ) -> Optional[str]:
        """Cancel (result ignored) then schedule; SchedulingError propagates."""
        await self.cancel(old_handle)
        return await self.schedule(reminder_id, new_fire_at, callback_url)
