"""User profile model for SQLModel."""
from datetime import datetime
from typing import Optional
import uuid

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Profile row for an identity-provider account.

    Read-only from this service: it supplies delivery addresses, the user's
    timezone and the plan fields consulted for entitlements.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True
    )
    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    timezone: str = Field(default="UTC", max_length=64)
    push_token: Optional[str] = Field(default=None, max_length=500)

    plan_type: str = Field(default="FREE", max_length=10)  # FREE, PRO, TEAM
    plan_status: str = Field(default="active", max_length=20)  # active, trial, past_due, cancelled, expired
    trial_end: Optional[NaiveDatetime] = Field(sa_type=DateTime, default=None)
    smart_snooze_enabled: bool = Field(default=True)

    created_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(sa_type=DateTime, default_factory=datetime.utcnow)
