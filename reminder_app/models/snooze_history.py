"""Snooze history model for SQLModel."""
from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class SnoozeHistory(SQLModel, table=True):
    """A snooze the user performed; the smart snooze estimator's input."""

    __tablename__ = "snooze_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    reminder_id: Optional[str] = Field(default=None, index=True, max_length=36)
    duration_minutes: int
    snooze_reason: str = Field(default="user_action", max_length=30)  # user_action, smart_suggestion
    hour_of_day: int  # 0-23 in the user's timezone
    day_of_week: int  # 0=Monday .. 6=Sunday in the user's timezone
    created_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow, index=True)
