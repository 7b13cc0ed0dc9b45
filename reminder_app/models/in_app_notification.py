"""In-app notification model for SQLModel."""
from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class InAppNotification(SQLModel, table=True):
    """Inbox entry written by the in-app channel."""

    __tablename__ = "in_app_notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    reminder_id: str = Field(max_length=36)
    title: str = Field(max_length=200)
    message: str = Field(max_length=1000)
    affirmation: Optional[str] = Field(default=None, max_length=500)
    is_read: bool = Field(default=False)
    created_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
