"""
Reminder business logic.

Reminders belong to the user who created them. Only the owner (or a
platform owner) can edit, complete, dismiss or delete one. Completing a
recurring reminder creates its next occurrence in the same transaction.
"""

from datetime import timedelta
from typing import Literal

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.metrics import reminders_notified_total
from app.core.query_helpers import page_of
from app.core.timeutil import as_utc, end_of_day, start_of_day, utcnow
from app.features.reminders.recurrence import next_occurrence, within_end
from app.models.file import File, FileStatus
from app.models.reminder import OPEN_REMINDER_STATUSES, Reminder, ReminderStatus
from app.models.user import User
from app.schemas.reminder import (
    CompletionResult,
    PendingReminders,
    ReminderCreate,
    ReminderRead,
    ReminderUpdate,
    ReminderWithFile,
    TodoDocuments,
    TodoSummary,
)

logger = get_logger(__name__)

TodoFilter = Literal["all", "overdue", "today", "upcoming"]

PENDING_WINDOW = timedelta(hours=24)
PENDING_LIMIT = 20
UPCOMING_WINDOW = timedelta(days=7)
# NOT NULL columns; an explicit null leaves them unchanged
REQUIRED_FIELDS = ("reminder_datetime", "priority", "is_recurring")


def with_file_name(reminder: Reminder, file_name: str | None) -> ReminderWithFile:
    return ReminderWithFile(**ReminderRead.model_validate(reminder).model_dump(), file_name=file_name)


def _with_file():
    return select(Reminder, File.name).outerjoin(File, File.id == Reminder.file_id)


def _todo_condition(todo_filter: TodoFilter, now):
    if todo_filter == "overdue":
        return Reminder.reminder_datetime < now
    if todo_filter == "today":
        return Reminder.reminder_datetime.between(start_of_day(now.date()), end_of_day(now.date()))
    if todo_filter == "upcoming":
        return and_(
            Reminder.reminder_datetime > now,
            Reminder.reminder_datetime <= now + UPCOMING_WINDOW,
        )
    return None


class ReminderService:
    """Reminder service with business logic."""

    @staticmethod
    async def _get_owned(db: AsyncSession, actor: User, reminder_id: str) -> Reminder:
        reminder = await db.get(Reminder, reminder_id)
        if reminder is None:
            raise not_found("Reminder not found")
        enforce(actor, Action.OWN_REMINDER, reminder)
        return reminder

    @staticmethod
    async def list_reminders(
        db: AsyncSession,
        actor: User,
        status: ReminderStatus | None = None,
        page: int = 1,
        limit: int = 50,
    ):
        """The caller's reminders ordered by due time."""
        conditions = [Reminder.user_id == actor.id]
        if status is not None:
            conditions.append(Reminder.status == status.value)

        total = (await db.execute(
            select(func.count(Reminder.id)).where(*conditions)
        )).scalar_one()
        rows = await db.execute(
            _with_file()
            .where(*conditions)
            .order_by(Reminder.reminder_datetime.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [with_file_name(reminder, name) for reminder, name in rows.all()]
        return page_of(items, total, page, limit)

    @staticmethod
    async def pending(db: AsyncSession, actor: User) -> PendingReminders:
        """Open reminders due within the next 24 hours, and how many are already due."""
        now = utcnow()
        open_mine = [
            Reminder.user_id == actor.id,
            Reminder.status.in_(OPEN_REMINDER_STATUSES),
        ]
        rows = await db.execute(
            _with_file()
            .where(*open_mine, Reminder.reminder_datetime <= now + PENDING_WINDOW)
            .order_by(Reminder.reminder_datetime.asc())
            .limit(PENDING_LIMIT)
        )
        due = await db.execute(
            select(func.count(Reminder.id)).where(*open_mine, Reminder.reminder_datetime <= now)
        )
        return PendingReminders(
            items=[with_file_name(reminder, name) for reminder, name in rows.all()],
            due_count=due.scalar_one(),
        )

    @staticmethod
    async def todo_documents(
        db: AsyncSession,
        actor: User,
        todo_filter: TodoFilter = "all",
        page: int = 1,
        limit: int = 20,
    ) -> TodoDocuments:
        """
        Active files the caller has open reminders on.

        Overdue items come first, then by due time. The summary counts
        ignore ``todo_filter``.
        """
        now = utcnow()
        base = [
            Reminder.user_id == actor.id,
            Reminder.status.in_(OPEN_REMINDER_STATUSES),
            File.status == FileStatus.ACTIVE.value,
        ]
        condition = _todo_condition(todo_filter, now)
        filtered = base if condition is None else [*base, condition]

        rows = await db.execute(
            select(Reminder, File.name)
            .join(File, File.id == Reminder.file_id)
            .where(*filtered)
            .order_by(
                case((Reminder.reminder_datetime < now, 0), else_=1),
                Reminder.reminder_datetime.asc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )

        def count_when(cond):
            return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

        summary = (await db.execute(
            select(
                count_when(_todo_condition("overdue", now)),
                count_when(_todo_condition("today", now)),
                count_when(_todo_condition("upcoming", now)),
                func.count(Reminder.id),
            )
            .select_from(Reminder)
            .join(File, File.id == Reminder.file_id)
            .where(*base)
        )).one()

        return TodoDocuments(
            items=[with_file_name(reminder, name) for reminder, name in rows.all()],
            summary=TodoSummary(
                overdue=int(summary[0]),
                today=int(summary[1]),
                upcoming=int(summary[2]),
                total=int(summary[3]),
            ),
        )

    @staticmethod
    async def create(db: AsyncSession, actor: User, data: ReminderCreate) -> Reminder:
        """
        Create a reminder on a file.

        Raises:
            ResourceNotFoundError: File missing or in trash
            AuthorizationError: File in another organization
        """
        file = await db.get(File, data.file_id)
        if file is None or file.status != FileStatus.ACTIVE.value:
            raise not_found("File not found")
        enforce(actor, Action.ACCESS_FILE, file)

        reminder = Reminder(
            file_id=file.id,
            user_id=actor.id,
            organization_id=file.organization_id,
            reminder_datetime=as_utc(data.reminder_datetime),
            title=data.title,
            note=data.note,
            priority=data.priority.value,
            status=ReminderStatus.PENDING.value,
            is_recurring=data.is_recurring,
            recurrence_pattern=data.recurrence_pattern.value if data.is_recurring else None,
            recurrence_end_date=as_utc(data.recurrence_end_date) if data.is_recurring else None,
        )
        db.add(reminder)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.REMINDER,
            resource_id=reminder.id,
            details={"fileId": file.id, "reminderDatetime": reminder.reminder_datetime},
            actor=actor,
            organization_id=file.organization_id,
        )
        return reminder

    @staticmethod
    async def update(db: AsyncSession, actor: User, reminder_id: str, data: ReminderUpdate) -> Reminder:
        reminder = await ReminderService._get_owned(db, actor, reminder_id)
        if not reminder.is_open:
            raise bad_request("Only pending reminders can be edited")

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            if field in ("reminder_datetime", "recurrence_end_date"):
                value = as_utc(value)
            elif field in ("priority", "recurrence_pattern") and value is not None:
                value = value.value
            setattr(reminder, field, value)

        if reminder.is_recurring and not reminder.recurrence_pattern:
            raise bad_request("recurrence_pattern is required for recurring reminders")
        if not reminder.is_recurring:
            reminder.recurrence_pattern = None
            reminder.recurrence_end_date = None
        if changes.get("reminder_datetime") is not None:
            # A rescheduled reminder fires again.
            reminder.status = ReminderStatus.PENDING.value
            reminder.notified_at = None

        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.REMINDER,
            resource_id=reminder.id,
            details=changes,
            actor=actor,
            organization_id=reminder.organization_id,
        )
        return reminder

    @staticmethod
    async def complete(db: AsyncSession, actor: User, reminder_id: str) -> CompletionResult:
        """
        Mark a reminder completed.

        For a recurring reminder exactly one successor is created, due one
        period after this occurrence, unless that falls after the
        recurrence end date.

        Raises:
            ValidationError: Reminder already completed or dismissed
        """
        reminder = await ReminderService._get_owned(db, actor, reminder_id)
        if not reminder.is_open:
            raise bad_request(f"Reminder is already {reminder.status}")

        reminder.status = ReminderStatus.COMPLETED.value
        reminder.completed_at = utcnow()

        successor = None
        if reminder.is_recurring and reminder.recurrence_pattern:
            due = next_occurrence(as_utc(reminder.reminder_datetime), reminder.recurrence_pattern)
            if within_end(due, reminder.recurrence_end_date):
                successor = Reminder(
                    file_id=reminder.file_id,
                    user_id=reminder.user_id,
                    organization_id=reminder.organization_id,
                    reminder_datetime=due,
                    title=reminder.title,
                    note=reminder.note,
                    priority=reminder.priority,
                    status=ReminderStatus.PENDING.value,
                    is_recurring=True,
                    recurrence_pattern=reminder.recurrence_pattern,
                    recurrence_end_date=reminder.recurrence_end_date,
                    parent_reminder_id=reminder.id,
                )
                db.add(successor)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.COMPLETE,
            resource_type=ResourceType.REMINDER,
            resource_id=reminder.id,
            details={"nextReminderId": successor.id if successor else None},
            actor=actor,
            organization_id=reminder.organization_id,
        )
        return CompletionResult(
            reminder=ReminderRead.model_validate(reminder),
            next_reminder=ReminderRead.model_validate(successor) if successor else None,
        )

    @staticmethod
    async def dismiss(db: AsyncSession, actor: User, reminder_id: str) -> Reminder:
        reminder = await ReminderService._get_owned(db, actor, reminder_id)
        if not reminder.is_open:
            raise bad_request(f"Reminder is already {reminder.status}")

        reminder.status = ReminderStatus.DISMISSED.value
        reminder.dismissed_at = utcnow()
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DISMISS,
            resource_type=ResourceType.REMINDER,
            resource_id=reminder.id,
            actor=actor,
            organization_id=reminder.organization_id,
        )
        return reminder

    @staticmethod
    async def delete(db: AsyncSession, actor: User, reminder_id: str) -> None:
        reminder = await ReminderService._get_owned(db, actor, reminder_id)
        organization_id = reminder.organization_id

        await db.execute(
            update(Reminder)
            .where(Reminder.parent_reminder_id == reminder.id)
            .values(parent_reminder_id=None)
        )
        await db.delete(reminder)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DELETE,
            resource_type=ResourceType.REMINDER,
            resource_id=reminder_id,
            actor=actor,
            organization_id=organization_id,
        )

    @staticmethod
    async def for_file(db: AsyncSession, actor: User, file_id: str) -> list[ReminderRead]:
        """The caller's open reminders on one file."""
        file = await db.get(File, file_id)
        if file is None or file.status != FileStatus.ACTIVE.value:
            raise not_found("File not found")
        enforce(actor, Action.ACCESS_FILE, file)

        result = await db.execute(
            select(Reminder)
            .where(
                Reminder.file_id == file.id,
                Reminder.user_id == actor.id,
                Reminder.status.in_(OPEN_REMINDER_STATUSES),
            )
            .order_by(Reminder.reminder_datetime.asc())
        )
        return [ReminderRead.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def mark_due(db: AsyncSession) -> int:
        """Move pending reminders whose time has come to notified."""
        now = utcnow()
        result = await db.execute(
            update(Reminder)
            .where(
                Reminder.status == ReminderStatus.PENDING.value,
                Reminder.reminder_datetime <= now,
            )
            .values(status=ReminderStatus.NOTIFIED.value, notified_at=now)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        reminders_notified_total.inc(count)
        logger.info("reminders_marked_due", count=count)
        return count


# Singleton instance
reminder_service = ReminderService()
