"""
Reminder endpoints.

Every route works on the caller's own reminders.
"""

from typing import Literal

from fastapi import APIRouter, Query, status

from app.features.auth.dependencies import CurrentUser, DBSession
from app.features.reminders.service import reminder_service
from app.models.reminder import ReminderStatus
from app.schemas.common import APIResponse, Page, ok
from app.schemas.reminder import (
    CompletionResult,
    PendingReminders,
    ReminderCreate,
    ReminderRead,
    ReminderUpdate,
    ReminderWithFile,
    TodoDocuments,
)

router = APIRouter(prefix="/reminders", tags=["Reminders"])


@router.get("/", response_model=APIResponse[Page[ReminderWithFile]])
async def list_reminders(
    current_user: CurrentUser,
    db: DBSession,
    status: ReminderStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
):
    """My reminders ordered by due time."""
    result = await reminder_service.list_reminders(
        db, current_user, status=status, page=page, limit=limit
    )
    return ok(Page[ReminderWithFile].from_result(result))


@router.get("/pending", response_model=APIResponse[PendingReminders])
async def pending_reminders(current_user: CurrentUser, db: DBSession):
    """Open reminders due within 24 hours, plus the number already due."""
    return ok(await reminder_service.pending(db, current_user))


@router.get("/todo-documents", response_model=APIResponse[TodoDocuments])
async def todo_documents(
    current_user: CurrentUser,
    db: DBSession,
    filter: Literal["all", "overdue", "today", "upcoming"] = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Files with open reminders, overdue first, with summary counts."""
    return ok(await reminder_service.todo_documents(
        db, current_user, todo_filter=filter, page=page, limit=limit
    ))


@router.post("/", response_model=APIResponse[ReminderRead], status_code=status.HTTP_201_CREATED)
async def create_reminder(data: ReminderCreate, current_user: CurrentUser, db: DBSession):
    reminder = await reminder_service.create(db, current_user, data)
    return ok(ReminderRead.model_validate(reminder), message="Reminder created successfully")


@router.get("/file/{file_id}", response_model=APIResponse[list[ReminderRead]])
async def reminders_for_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """My open reminders on one file."""
    return ok(await reminder_service.for_file(db, current_user, file_id))


@router.put("/{reminder_id}", response_model=APIResponse[ReminderRead])
async def update_reminder(reminder_id: str, data: ReminderUpdate, current_user: CurrentUser, db: DBSession):
    reminder = await reminder_service.update(db, current_user, reminder_id, data)
    return ok(ReminderRead.model_validate(reminder), message="Reminder updated successfully")


@router.post("/{reminder_id}/complete", response_model=APIResponse[CompletionResult])
async def complete_reminder(reminder_id: str, current_user: CurrentUser, db: DBSession):
    """Complete a reminder; recurring ones schedule their next occurrence."""
    result = await reminder_service.complete(db, current_user, reminder_id)
    return ok(result, message="Reminder marked as completed")


@router.post("/{reminder_id}/dismiss", response_model=APIResponse[ReminderRead])
async def dismiss_reminder(reminder_id: str, current_user: CurrentUser, db: DBSession):
    reminder = await reminder_service.dismiss(db, current_user, reminder_id)
    return ok(ReminderRead.model_validate(reminder), message="Reminder dismissed")


@router.delete("/{reminder_id}", response_model=APIResponse[None])
async def delete_reminder(reminder_id: str, current_user: CurrentUser, db: DBSession):
    await reminder_service.delete(db, current_user, reminder_id)
    return ok(message="Reminder deleted successfully")
