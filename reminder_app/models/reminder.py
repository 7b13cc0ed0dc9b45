"""Reminder model for SQLModel."""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import Column, DateTime, Enum as SAEnum, String
from sqlmodel import Field, SQLModel

from reminder_app.services.reminder_state import ReminderStatus

TONES = ("motivational", "professional", "playful", "simple")
CHANNELS = ("email", "push", "in_app")


class Reminder(SQLModel, table=True):
    """A message the owner wants delivered at remind_at."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)
    user_id: str = Field(sa_column=Column(String, index=True, nullable=False))
    message: str = Field(max_length=1000)
    remind_at: NaiveDatetime = Field(sa_type=DateTime, index=True)  # naive UTC
    tone: str = Field(default="motivational", max_length=20)
    notification_method: str = Field(default="email", max_length=20)  # email, push, in_app
    status: ReminderStatus = Field(
        default=ReminderStatus.PENDING,
        sa_column=Column(
            SAEnum(
                ReminderStatus,
                values_callable=lambda members: [m.value for m in members],
                native_enum=False,
                length=20,
            ),
            nullable=False,
            index=True,
        ),
    )

    # Weak reference to the delay-queue job; may be stale at any time.
    delay_job_id: Optional[str] = Field(default=None, max_length=100)

    # Delivery lease held by an in-flight dispatcher
    claim_token: Optional[str] = Field(default=None, max_length=36)
    claimed_at: Optional[NaiveDatetime] = Field(sa_type=DateTime, default=None)

    created_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
