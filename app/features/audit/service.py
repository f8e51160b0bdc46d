"""
Audit log queries and export.
"""

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.query_helpers import escape_like, page_of
from app.core.timeutil import as_utc, end_of_day, start_of_day, utcnow
from app.models.audit_log import AuditLog
from app.models.organization import Organization
from app.models.user import User
from app.schemas.audit import (
    AuditFilterOptions,
    AuditLogDetail,
    AuditLogRead,
    AuditStats,
    CountItem,
    DailyActivity,
)

logger = get_logger(__name__)

CSV_COLUMNS = ["ID", "Date", "Action", "Resource Type", "Resource ID", "Details", "User", "Organization"]


def parse_bound(value: str | None, end: bool = False) -> datetime | None:
    """
    Parse a date filter.

    A bare date covers the whole day: as a lower bound it means 00:00,
    as an upper bound the last instant of the day.
    """
    if not value:
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return end_of_day(day) if end else start_of_day(day)
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        raise bad_request(f"Invalid date: {value}")


@dataclass
class AuditFilter:
    """Filters shared by listing and export."""

    q: str | None = None
    action: str | None = None
    resource_type: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    user_id: str | None = None
    organization_id: str | None = None

    def apply(self, query: Select) -> Select:
        if self.action:
            query = query.where(AuditLog.action == self.action.upper())
        if self.resource_type:
            query = query.where(AuditLog.resource_type == self.resource_type.upper())
        if self.user_id:
            query = query.where(AuditLog.user_id == self.user_id)
        if self.organization_id:
            query = query.where(AuditLog.organization_id == self.organization_id)
        start = parse_bound(self.start_date)
        end = parse_bound(self.end_date, end=True)
        if start is not None:
            query = query.where(AuditLog.created_at >= start)
        if end is not None:
            query = query.where(AuditLog.created_at <= end)
        if self.q:
            pattern = f"%{escape_like(self.q.strip())}%"
            query = query.where(or_(
                AuditLog.action.ilike(pattern, escape="\\"),
                AuditLog.resource_type.ilike(pattern, escape="\\"),
                AuditLog.details.ilike(pattern, escape="\\"),
            ))
        return query


def user_label(first_name: str | None, last_name: str | None, email: str | None) -> str:
    """``First Last (email)``, or empty for system entries."""
    if email is None:
        return ""
    name = " ".join(part for part in (first_name, last_name) if part)
    return f"{name} ({email})" if name else email


def export_filename(today: date | None = None) -> str:
    return f"audit_logs_{(today or utcnow().date()).isoformat()}.csv"


def render_csv(rows) -> str:
    """
    Render export rows as CSV text.

    Each row is ``(AuditLog, first_name, last_name, email, organization_name)``.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for entry, first_name, last_name, email, organization_name in rows:
        writer.writerow([
            entry.id,
            as_utc(entry.created_at).isoformat(),
            entry.action,
            entry.resource_type,
            entry.resource_id or "",
            entry.details or "",
            user_label(first_name, last_name, email),
            organization_name or "",
        ])
    return buffer.getvalue()


def _detailed():
    return (
        select(AuditLog, User.first_name, User.last_name, User.email, Organization.name)
        .outerjoin(User, User.id == AuditLog.user_id)
        .outerjoin(Organization, Organization.id == AuditLog.organization_id)
    )


def to_detail(entry: AuditLog, first_name, last_name, email, organization_name) -> AuditLogDetail:
    name = " ".join(part for part in (first_name, last_name) if part) or None
    return AuditLogDetail(
        **AuditLogRead.model_validate(entry).model_dump(),
        user_name=name,
        user_email=email,
        organization_name=organization_name,
    )


class AuditService:
    """Read side of the audit log."""

    @staticmethod
    def _scope(actor: User, filters: AuditFilter) -> AuditFilter:
        """Organization admins only ever see their own organization."""
        enforce(actor, Action.ADMIN)
        if not actor.is_platform_owner:
            filters.organization_id = actor.organization_id
        return filters

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        actor: User,
        filters: AuditFilter,
        page: int = 1,
        limit: int = 20,
    ):
        """Entries newest first; equal timestamps fall back to insertion order."""
        filters = AuditService._scope(actor, filters)

        total = (await db.execute(
            filters.apply(select(func.count(AuditLog.id)))
        )).scalar_one()
        rows = await db.execute(
            filters.apply(_detailed())
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return page_of([to_detail(*row) for row in rows.all()], total, page, limit)

    @staticmethod
    async def get(db: AsyncSession, actor: User, entry_id: int) -> AuditLogDetail:
        enforce(actor, Action.ADMIN)
        row = (await db.execute(_detailed().where(AuditLog.id == entry_id))).first()
        if row is None:
            raise not_found("Audit log not found")
        if not actor.is_platform_owner:
            enforce(actor, Action.ACCESS_ORGANIZATION, row[0])
        return to_detail(*row)

    @staticmethod
    async def stats(db: AsyncSession, actor: User) -> AuditStats:
        filters = AuditService._scope(actor, AuditFilter())

        async def counts(column) -> list[CountItem]:
            rows = await db.execute(
                filters.apply(select(column, func.count(AuditLog.id)))
                .group_by(column)
                .order_by(func.count(AuditLog.id).desc())
            )
            return [CountItem(key=key, count=count) for key, count in rows.all()]

        total = (await db.execute(filters.apply(select(func.count(AuditLog.id))))).scalar_one()

        since = start_of_day(utcnow().date() - timedelta(days=6))
        day = func.date(AuditLog.created_at)
        daily_rows = await db.execute(
            filters.apply(select(day, func.count(AuditLog.id)))
            .where(AuditLog.created_at >= since)
            .group_by(day)
            .order_by(day)
        )

        return AuditStats(
            total=total,
            by_action=await counts(AuditLog.action),
            by_resource_type=await counts(AuditLog.resource_type),
            last_7_days=[
                DailyActivity(date=str(d), count=count) for d, count in daily_rows.all()
            ],
        )

    @staticmethod
    async def filter_options(db: AsyncSession, actor: User) -> AuditFilterOptions:
        filters = AuditService._scope(actor, AuditFilter())
        actions = await db.execute(
            filters.apply(select(AuditLog.action).distinct()).order_by(AuditLog.action)
        )
        resource_types = await db.execute(
            filters.apply(select(AuditLog.resource_type).distinct()).order_by(AuditLog.resource_type)
        )
        return AuditFilterOptions(
            actions=list(actions.scalars().all()),
            resource_types=list(resource_types.scalars().all()),
        )

    @staticmethod
    async def export_csv(db: AsyncSession, actor: User, filters: AuditFilter) -> tuple[str, str]:
        """
        Export matching entries as CSV.

        Returns:
            (filename, csv text)
        """
        enforce(actor, Action.PLATFORM)

        rows = (await db.execute(
            filters.apply(_detailed()).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        )).all()
        content = render_csv(rows)

        await audit_recorder.record(
            db,
            action=AuditAction.EXPORT,
            resource_type=ResourceType.AUDIT_LOGS,
            details={
                "count": len(rows),
                "filters": {k: v for k, v in vars(filters).items() if v},
            },
            actor=actor,
        )
        logger.info("audit_logs_exported", count=len(rows))
        return export_filename(), content


# Singleton instance
audit_service = AuditService()
