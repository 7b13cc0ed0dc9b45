"""Delivery attempt (sent log) model for SQLModel."""
from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class SentLog(SQLModel, table=True):
    """One row per channel that successfully delivered a reminder."""

    __tablename__ = "sent_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    reminder_id: str = Field(index=True, max_length=36)
    user_id: str = Field(index=True)
    channel: str = Field(max_length=20)  # email, push, in_app
    affirmation: Optional[str] = Field(default=None, max_length=500)
    success: bool = Field(default=True)
    provider_message_id: Optional[str] = Field(default=None, max_length=200)  # for open/engagement tracking
    sent_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
