"""Reminder request/response schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from reminder_app.services.reminder_state import ReminderStatus


class ReminderCreate(BaseModel):
    """Schema for creating a reminder."""
    message: str = Field(..., min_length=1, max_length=1000)
    remind_at: datetime  # ISO 8601; naive values are taken as UTC
    tone: Optional[str] = Field(default="motivational", pattern=r"^(motivational|professional|playful|simple)$")
    notification_method: Optional[str] = Field(default="email", pattern=r"^(email|push|in_app)(,(email|push|in_app))*$")


class SnoozeRequest(BaseModel):
    """Schema for snoozing a reminder."""
    minutes: int = Field(..., gt=0, le=10080)
    is_smart_suggestion: bool = False


class ReminderResponse(BaseModel):
    """Schema for reminder API responses."""
    id: str
    user_id: str
    message: str
    remind_at: datetime
    tone: str
    notification_method: str
    status: ReminderStatus
    delay_job_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReminderListResponse(BaseModel):
    reminders: List[ReminderResponse]
    total: int


class SnoozeSuggestionBody(BaseModel):
    suggested_minutes: int
    confidence: str
    reason: str
    basis: str
    sample_size: int


class SnoozeSuggestionResponse(BaseModel):
    """`suggestion` is null when smart snooze is disabled for the user."""
    suggestion: Optional[SnoozeSuggestionBody] = None
