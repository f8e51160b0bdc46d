"""
Platform administration queries.

Everything here is platform-owner only and reads across organizations.
"""

from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.cache import DASHBOARD_NAMESPACE, DASHBOARD_STATS_KEY, cached
from app.core.logging_config import get_logger
from app.core.quota import mb_to_bytes
from app.core.timeutil import start_of_day, utcnow
from app.features.audit.service import AuditFilter, audit_service
from app.features.organizations.service import organization_service
from app.models.audit_log import AuditLog
from app.models.file import File, FileStatus
from app.models.organization import Organization, OrganizationStatus
from app.models.user import User, UserStatus
from app.schemas.admin import (
    DashboardStats,
    FileTypeStorage,
    OrganizationStorage,
    PlatformSettings,
    PlatformSettingsUpdate,
    PlatformTotals,
    StorageAnalytics,
)
from app.schemas.audit import DailyActivity

logger = get_logger(__name__)


def _percentage(used: int, quota: int) -> float:
    return round(used / quota * 100, 2) if quota else 0.0


async def _scalar(db: AsyncSession, query) -> int:
    return int((await db.execute(query)).scalar_one() or 0)


@cached(namespace=DASHBOARD_NAMESPACE, ttl=settings.cache_stats_ttl, key_builder=lambda db: DASHBOARD_STATS_KEY)
async def dashboard_stats(db: AsyncSession) -> dict:
    """Platform overview, cached briefly; returned as JSON-ready data."""
    now = utcnow()
    active_files = File.status == FileStatus.ACTIVE.value

    quota_mb = await _scalar(db, select(func.coalesce(func.sum(Organization.storage_quota), 0)).where(
        Organization.status == OrganizationStatus.ACTIVE.value
    ))
    totals = PlatformTotals(
        active_organizations=await _scalar(db, select(func.count(Organization.id)).where(
            Organization.status == OrganizationStatus.ACTIVE.value
        )),
        active_users=await _scalar(db, select(func.count(User.id)).where(
            User.status == UserStatus.ACTIVE.value
        )),
        total_files=await _scalar(db, select(func.count(File.id)).where(active_files)),
        total_storage_used=await _scalar(
            db, select(func.coalesce(func.sum(File.file_size), 0)).where(active_files)
        ),
        total_storage_quota_bytes=mb_to_bytes(quota_mb),
    )

    day = func.date(AuditLog.created_at)
    activity = await db.execute(
        select(day, func.count(AuditLog.id))
        .where(AuditLog.created_at >= start_of_day(now.date() - timedelta(days=6)))
        .group_by(day)
        .order_by(day)
    )

    stats = DashboardStats(
        totals=totals,
        top_organizations=await organization_service.top_by_usage(db, limit=10),
        activity_last_7_days=[DailyActivity(date=str(d), count=c) for d, c in activity.all()],
        files_uploaded_7d=await _scalar(db, select(func.count(File.id)).where(
            File.created_at >= now - timedelta(days=7)
        )),
        active_users_30d=await _scalar(db, select(func.count(User.id)).where(
            User.status == UserStatus.ACTIVE.value,
            User.last_login >= now - timedelta(days=30),
        )),
    )
    return stats.model_dump(mode="json")


class AdminService:
    """Platform owner views."""

    @staticmethod
    async def dashboard(db: AsyncSession, actor: User) -> DashboardStats:
        enforce(actor, Action.PLATFORM)
        return DashboardStats.model_validate(await dashboard_stats(db))

    @staticmethod
    async def activity_timeline(
        db: AsyncSession,
        actor: User,
        action: str | None = None,
        user_id: str | None = None,
        organization_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ):
        enforce(actor, Action.PLATFORM)
        filters = AuditFilter(action=action, user_id=user_id, organization_id=organization_id)
        return await audit_service.list_entries(db, actor, filters, page=page, limit=limit)

    @staticmethod
    async def storage_analytics(db: AsyncSession, actor: User) -> StorageAnalytics:
        enforce(actor, Action.PLATFORM)

        per_org = await db.execute(
            select(
                Organization,
                func.coalesce(func.sum(File.file_size), 0),
                func.count(File.id),
            )
            .outerjoin(
                File,
                (File.organization_id == Organization.id) & (File.status == FileStatus.ACTIVE.value),
            )
            .where(Organization.status == OrganizationStatus.ACTIVE.value)
            .group_by(Organization.id)
            .order_by(func.coalesce(func.sum(File.file_size), 0).desc())
        )
        by_organization = []
        for organization, used, file_count in per_org.all():
            quota = mb_to_bytes(organization.storage_quota)
            by_organization.append(OrganizationStorage(
                id=organization.id,
                name=organization.name,
                storage_quota_bytes=quota,
                used_bytes=int(used),
                usage_percentage=_percentage(int(used), quota),
                file_count=file_count,
            ))

        per_type = await db.execute(
            select(
                File.file_type,
                func.count(File.id),
                func.coalesce(func.sum(File.file_size), 0),
                func.coalesce(func.avg(File.file_size), 0),
            )
            .where(File.status == FileStatus.ACTIVE.value)
            .group_by(File.file_type)
            .order_by(func.sum(File.file_size).desc())
        )
        by_file_type = [
            FileTypeStorage(
                file_type=file_type,
                file_count=count,
                total_size=int(total),
                avg_size=round(float(avg), 2),
            )
            for file_type, count, total, avg in per_type.all()
        ]

        total_quota = sum(o.storage_quota_bytes for o in by_organization)
        total_used = sum(o.used_bytes for o in by_organization)
        return StorageAnalytics(
            total_quota_bytes=total_quota,
            total_used_bytes=total_used,
            usage_percentage=_percentage(total_used, total_quota),
            by_organization=by_organization,
            by_file_type=by_file_type,
        )

    @staticmethod
    def current_settings(actor: User) -> PlatformSettings:
        enforce(actor, Action.PLATFORM)
        return PlatformSettings(
            max_file_size=settings.max_upload_size,
            allowed_file_types=sorted(settings.allowed_extensions),
            default_storage_quota=settings.default_storage_quota_mb,
            trash_retention_days=settings.trash_retention_days,
            session_timeout_minutes=settings.access_token_expire_minutes,
        )

    @staticmethod
    async def update_settings(db: AsyncSession, actor: User, data: PlatformSettingsUpdate) -> dict:
        """
        Record a settings change request.

        Runtime configuration comes from the environment; the submitted
        values are audited and echoed back, not applied.
        """
        enforce(actor, Action.PLATFORM)
        submitted = data.model_dump(exclude_unset=True)

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.SETTINGS,
            details=submitted,
            actor=actor,
        )
        logger.info("settings_update_recorded", fields=sorted(submitted))
        return submitted


# Singleton instance
admin_service = AdminService()
