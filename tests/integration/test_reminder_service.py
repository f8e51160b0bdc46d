"""
Integration tests for reminders: lifecycle, recurrence and the due job.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.timeutil import as_utc, utcnow
from app.features.reminders import tasks as reminder_tasks
from app.features.reminders.service import reminder_service
from app.models import FileStatus, Reminder, ReminderStatus
from app.schemas.reminder import ReminderCreate, ReminderUpdate
from tests.factories import FileFactory, ReminderFactory


@pytest.mark.integration
class TestCreateReminder:
    async def test_create(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        due = utcnow() + timedelta(days=2)

        reminder = await reminder_service.create(
            db_session,
            member,
            ReminderCreate(file_id=file.id, reminder_datetime=due, title="Review"),
        )

        assert reminder.user_id == member.id
        assert reminder.organization_id == organization.id
        assert reminder.status == ReminderStatus.PENDING.value
        assert reminder.priority == "medium"
        assert reminder.recurrence_pattern is None

    async def test_trashed_file(self, db_session, member, organization):
        file = await FileFactory.create(
            db_session, organization, member, status=FileStatus.DELETED.value
        )

        with pytest.raises(ResourceNotFoundError):
            await reminder_service.create(
                db_session,
                member,
                ReminderCreate(file_id=file.id, reminder_datetime=utcnow()),
            )

    async def test_foreign_file(self, db_session, member, other_organization):
        file = await FileFactory.create(db_session, other_organization)

        with pytest.raises(AuthorizationError):
            await reminder_service.create(
                db_session,
                member,
                ReminderCreate(file_id=file.id, reminder_datetime=utcnow()),
            )


@pytest.mark.integration
class TestCompleteReminder:
    async def test_one_off(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)

        result = await reminder_service.complete(db_session, member, reminder.id)

        assert result.reminder.status == ReminderStatus.COMPLETED.value
        assert result.reminder.completed_at is not None
        assert result.next_reminder is None

    async def test_monthly_successor_clamps_day(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(
            db_session,
            file,
            member,
            reminder_datetime=datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc),
            title="Pay rent",
            priority="high",
            is_recurring=True,
            recurrence_pattern="monthly",
        )

        result = await reminder_service.complete(db_session, member, reminder.id)

        successor = result.next_reminder
        assert successor is not None
        assert as_utc(successor.reminder_datetime) == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)
        assert successor.parent_reminder_id == reminder.id
        assert successor.status == ReminderStatus.PENDING.value
        assert successor.title == "Pay rent"
        assert successor.priority == "high"
        assert successor.recurrence_pattern == "monthly"
        assert successor.user_id == member.id

    async def test_recurrence_stops_at_end_date(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(
            db_session,
            file,
            member,
            reminder_datetime=datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc),
            is_recurring=True,
            recurrence_pattern="weekly",
            recurrence_end_date=datetime(2024, 3, 15, tzinfo=timezone.utc),
        )

        result = await reminder_service.complete(db_session, member, reminder.id)

        assert result.next_reminder is None

    async def test_complete_twice(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)
        await reminder_service.complete(db_session, member, reminder.id)

        with pytest.raises(ValidationError) as exc_info:
            await reminder_service.complete(db_session, member, reminder.id)
        assert exc_info.value.message == "Reminder is already completed"

    async def test_dismiss_twice(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)
        await reminder_service.dismiss(db_session, member, reminder.id)

        with pytest.raises(ValidationError) as exc_info:
            await reminder_service.dismiss(db_session, member, reminder.id)
        assert exc_info.value.message == "Reminder is already dismissed"

    async def test_only_owner(self, db_session, member, org_admin, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)

        with pytest.raises(AuthorizationError):
            await reminder_service.complete(db_session, org_admin, reminder.id)


@pytest.mark.integration
class TestEditReminder:
    async def test_reschedule_resets_status(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(
            db_session,
            file,
            member,
            status=ReminderStatus.NOTIFIED.value,
            notified_at=utcnow(),
        )
        later = utcnow() + timedelta(days=3)

        updated = await reminder_service.update(
            db_session, member, reminder.id, ReminderUpdate(reminder_datetime=later)
        )

        assert updated.status == ReminderStatus.PENDING.value
        assert updated.notified_at is None

    async def test_recurring_requires_pattern(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)

        with pytest.raises(ValidationError):
            await reminder_service.update(
                db_session, member, reminder.id, ReminderUpdate(is_recurring=True)
            )

    async def test_dismissed_cannot_be_edited(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        reminder = await ReminderFactory.create(db_session, file, member)
        await reminder_service.dismiss(db_session, member, reminder.id)

        with pytest.raises(ValidationError) as exc_info:
            await reminder_service.update(
                db_session, member, reminder.id, ReminderUpdate(title="New")
            )
        assert exc_info.value.message == "Only pending reminders can be edited"

    async def test_delete_detaches_successors(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        parent = await ReminderFactory.create(db_session, file, member)
        child = await ReminderFactory.create(db_session, file, member, parent_reminder_id=parent.id)
        parent_id, child_id = parent.id, child.id

        await reminder_service.delete(db_session, member, parent_id)
        await db_session.commit()

        assert await db_session.get(Reminder, parent_id) is None
        stored_child = await db_session.get(Reminder, child_id)
        await db_session.refresh(stored_child)
        assert stored_child.parent_reminder_id is None


@pytest.mark.integration
class TestReminderViews:
    async def test_pending_window(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member, original_name="due.pdf")
        now = utcnow()
        await ReminderFactory.create(db_session, file, member, reminder_datetime=now - timedelta(hours=1))
        await ReminderFactory.create(db_session, file, member, reminder_datetime=now + timedelta(hours=5))
        await ReminderFactory.create(db_session, file, member, reminder_datetime=now + timedelta(days=3))
        await ReminderFactory.create(
            db_session,
            file,
            member,
            reminder_datetime=now - timedelta(hours=2),
            status=ReminderStatus.COMPLETED.value,
        )

        pending = await reminder_service.pending(db_session, member)

        assert len(pending.items) == 2
        assert pending.due_count == 1
        assert pending.items[0].file_name == "due.pdf"

    async def test_todo_documents_puts_overdue_first(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        trashed = await FileFactory.create(
            db_session, organization, member, status=FileStatus.DELETED.value
        )
        now = utcnow()
        upcoming = await ReminderFactory.create(
            db_session, file, member, reminder_datetime=now + timedelta(days=2)
        )
        overdue = await ReminderFactory.create(
            db_session, file, member, reminder_datetime=now - timedelta(days=2)
        )
        await ReminderFactory.create(
            db_session, trashed, member, reminder_datetime=now - timedelta(days=1)
        )

        result = await reminder_service.todo_documents(db_session, member)

        assert [item.id for item in result.items] == [overdue.id, upcoming.id]
        assert result.summary.overdue == 1
        assert result.summary.upcoming == 1
        assert result.summary.total == 2

        only_overdue = await reminder_service.todo_documents(db_session, member, "overdue")
        assert [item.id for item in only_overdue.items] == [overdue.id]
        assert only_overdue.summary.total == 2

    async def test_list_is_scoped_to_caller(self, db_session, member, org_admin, organization):
        file = await FileFactory.create(db_session, organization, member)
        await ReminderFactory.create(db_session, file, member)
        await ReminderFactory.create(db_session, file, org_admin)

        page = await reminder_service.list_reminders(db_session, member)

        assert page.total == 1
        assert page.items[0].user_id == member.id


@pytest.mark.integration
class TestMarkDue:
    async def test_marks_only_due_pending(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        now = utcnow()
        due = await ReminderFactory.create(db_session, file, member, reminder_datetime=now - timedelta(minutes=5))
        future = await ReminderFactory.create(db_session, file, member, reminder_datetime=now + timedelta(hours=1))
        due_id, future_id = due.id, future.id

        count = await reminder_service.mark_due(db_session)
        await db_session.commit()

        assert count == 1
        result = await db_session.execute(
            select(Reminder.id, Reminder.status, Reminder.notified_at)
        )
        rows = {row.id: row for row in result.all()}
        assert rows[due_id].status == ReminderStatus.NOTIFIED.value
        assert rows[due_id].notified_at is not None
        assert rows[future_id].status == ReminderStatus.PENDING.value

    async def test_scheduled_job(self, db_session, member, organization, monkeypatch):
        file = await FileFactory.create(db_session, organization, member)
        await ReminderFactory.create(db_session, file, member, reminder_datetime=utcnow() - timedelta(minutes=1))

        async def fake_sessions():
            yield db_session
            await db_session.commit()

        monkeypatch.setattr(reminder_tasks.db_manager, "get_session", fake_sessions)

        assert await reminder_tasks.mark_due_async() == 1
        assert await reminder_tasks.mark_due_async() == 0
