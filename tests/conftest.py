"""Shared fixtures: in-memory database, settings and collaborator doubles."""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from reminder_app.config import Settings
from reminder_app.dapr.client import DaprEventPublisher
from reminder_app.db.init import init_db
from reminder_app.errors import SchedulingError
from reminder_app.models.user import User
from reminder_app.providers.base_provider import SendResult
from reminder_app.services.reminder_store import ReminderStore
from reminder_app.utils.metrics import metrics_collector

TEST_SECRET = "test-secret"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite://",
        app_url="https://reminders.example.com",
        qstash_url="https://qstash.test",
        qstash_token="qstash-token",
        delay_queue_enabled=True,
        auth_jwt_secret=TEST_SECRET,
        resend_api_key="resend-key",
        resend_api_url="https://resend.test",
        push_service_url="https://push.test/send",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session) -> ReminderStore:
    return ReminderStore(session)


@pytest.fixture
def user(session) -> User:
    user = User(id="user-1", email="ada@example.com", name="Ada", push_token="ExponentPushToken[abc123]")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield
    metrics_collector.reset()


class StubDelayQueue:
    """Records schedule/cancel calls and hands out sequential job ids."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.scheduled: List[tuple] = []
        self.cancelled: List[str] = []
        self._counter = 0

    async def schedule(self, reminder_id: str, fire_at: datetime, callback_url: Optional[str] = None) -> Optional[str]:
        if self.fail:
            raise SchedulingError("Delay queue unreachable", {"reminder_id": reminder_id})
        self._counter += 1
        self.scheduled.append((reminder_id, fire_at))
        return f"msg_{self._counter}"

    async def cancel(self, job_handle: Optional[str]) -> bool:
        if not job_handle:
            return False
        self.cancelled.append(job_handle)
        return not self.fail

    async def reschedule(self, old_handle, reminder_id, new_fire_at, callback_url=None):
        await self.cancel(old_handle)
        return await self.schedule(reminder_id, new_fire_at, callback_url)


class StubSender:
    """Returns a canned SendResult per channel; unknown channels succeed."""

    def __init__(self, results: Optional[Dict[str, SendResult]] = None, raises: Optional[Dict[str, Exception]] = None):
        self.results = results or {}
        self.raises = raises or {}
        self.calls: List[str] = []

    async def send(self, channel, user, reminder, affirmation) -> SendResult:
        self.calls.append(channel)
        if channel in self.raises:
            raise self.raises[channel]
        return self.results.get(channel, SendResult(channel, True, provider_message_id=f"{channel}-id"))


class RecordingPublisher(DaprEventPublisher):
    """Dapr publisher that keeps events in memory instead of publishing."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.events: List[tuple] = []

    def publish_event(self, event_type, data, source="reminder-service"):
        self.events.append((event_type, data))
        return f"evt_{len(self.events)}"

    @property
    def types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def delay_queue() -> StubDelayQueue:
    return StubDelayQueue()


@pytest.fixture
def sender() -> StubSender:
    return StubSender()


@pytest.fixture
def publisher(settings) -> RecordingPublisher:
    return RecordingPublisher(settings)


def make_token(user_id: str, secret: str = TEST_SECRET, **claims) -> str:
    return jwt.encode(dict({"sub": user_id, "email": f"{user_id}@example.com"}, **claims), secret, algorithm="HS256")


def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def in_minutes(minutes: int) -> datetime:
    return datetime.utcnow() + timedelta(minutes=minutes)
