"""
Pydantic schemas for reminders.
"""

from datetime import datetime

from pydantic import Field, model_validator

from app.models.reminder import RecurrencePattern, ReminderPriority
from app.schemas.common import BaseSchema


class ReminderCreate(BaseSchema):
    """Schema for creating a reminder."""

    file_id: str
    reminder_datetime: datetime
    title: str | None = Field(None, max_length=255)
    note: str | None = Field(None, max_length=5000)
    priority: ReminderPriority = ReminderPriority.MEDIUM
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_end_date: datetime | None = None

    @model_validator(mode="after")
    def check_recurrence(self) -> "ReminderCreate":
        if self.is_recurring and self.recurrence_pattern is None:
            raise ValueError("recurrence_pattern is required for recurring reminders")
        return self


class ReminderUpdate(BaseSchema):
    """Schema for updating a reminder (all optional)."""

    reminder_datetime: datetime | None = None
    title: str | None = Field(None, max_length=255)
    note: str | None = Field(None, max_length=5000)
    priority: ReminderPriority | None = None
    is_recurring: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_end_date: datetime | None = None


class ReminderRead(BaseSchema):
    id: str
    file_id: str
    user_id: str
    organization_id: str
    reminder_datetime: datetime
    title: str | None
    note: str | None
    priority: str
    status: str
    is_recurring: bool
    recurrence_pattern: str | None
    recurrence_end_date: datetime | None
    parent_reminder_id: str | None
    notified_at: datetime | None
    completed_at: datetime | None
    dismissed_at: datetime | None
    created_at: datetime


class ReminderWithFile(ReminderRead):
    file_name: str | None = None


class CompletionResult(BaseSchema):
    """A completed reminder and, for recurring ones, its successor."""

    reminder: ReminderRead
    next_reminder: ReminderRead | None = None


class PendingReminders(BaseSchema):
    items: list[ReminderWithFile]
    due_count: int


class TodoSummary(BaseSchema):
    overdue: int
    today: int
    upcoming: int
    total: int


class TodoDocuments(BaseSchema):
    items: list[ReminderWithFile]
    summary: TodoSummary
