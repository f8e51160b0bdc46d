"""
Organization management business logic.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.cache import invalidate_dashboard
from app.core.exceptions import bad_request, conflict, not_found
from app.core.logging_config import get_logger
from app.core.performance import PerformanceMonitor
from app.core.query_helpers import PageResult, QueryBuilder, page_of
from app.core.quota import mb_to_bytes, quota_accountant
from app.core.timeutil import utcnow
from app.models.file import File, FileStatus
from app.models.organization import Organization, OrganizationStatus
from app.models.user import User, UserStatus
from app.schemas.organization import (
    OrganizationCreate,
    OrganizationDetail,
    OrganizationRead,
    OrganizationStats,
    OrganizationUpdate,
    TopOrganization,
)

logger = get_logger(__name__)

NAME_TAKEN_MESSAGE = "Organization name already exists"


def _user_count_subquery():
    return (
        select(User.organization_id, func.count(User.id).label("user_count"))
        .where(User.status != UserStatus.DELETED.value)
        .group_by(User.organization_id)
        .subquery()
    )


def _storage_subquery():
    return (
        select(
            File.organization_id,
            func.coalesce(func.sum(File.file_size), 0).label("storage_used"),
            func.count(File.id).label("file_count"),
        )
        .where(File.status == FileStatus.ACTIVE.value)
        .group_by(File.organization_id)
        .subquery()
    )


def build_detail(organization: Organization, user_count: int, storage_used: int) -> OrganizationDetail:
    quota_bytes = mb_to_bytes(organization.storage_quota)
    return OrganizationDetail(
        **OrganizationRead.model_validate(organization).model_dump(),
        user_count=user_count or 0,
        storage_used=storage_used or 0,
        storage_quota_bytes=quota_bytes,
        usage_percentage=round((storage_used or 0) / quota_bytes * 100, 2) if quota_bytes else 0.0,
    )


class OrganizationService:
    """Organization service with business logic."""

    @staticmethod
    async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
        query = select(Organization.id).where(
            func.lower(Organization.name) == name.lower(),
            Organization.status != OrganizationStatus.DELETED.value,
        )
        if exclude_id:
            query = query.where(Organization.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise conflict(NAME_TAKEN_MESSAGE)

    @staticmethod
    async def _get(db: AsyncSession, organization_id: str) -> Organization:
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise not_found("Organization not found")
        return organization

    @staticmethod
    async def list_organizations(
        db: AsyncSession,
        actor: User,
        q: str | None = None,
        status: OrganizationStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        """List organizations with member counts and storage usage."""
        enforce(actor, Action.PLATFORM)

        users = _user_count_subquery()
        storage = _storage_subquery()
        query = (
            select(Organization, users.c.user_count, storage.c.storage_used)
            .outerjoin(users, users.c.organization_id == Organization.id)
            .outerjoin(storage, storage.c.organization_id == Organization.id)
        )

        async with PerformanceMonitor("list_organizations"):
            result = await (
                QueryBuilder(db, Organization, query)
                .filter_if(status, Organization.status == (status.value if status else None))
                .search(q, Organization.name, Organization.description)
                .order_by(Organization.created_at, "desc")
                .paginate(page=page, limit=limit)
                .execute(scalars=False)
            )

        items = [build_detail(org, user_count, used) for org, user_count, used in result.items]
        return page_of(items, result.total, result.page, result.limit)

    @staticmethod
    async def get_detail(db: AsyncSession, actor: User, organization_id: str) -> OrganizationDetail:
        """
        One organization with usage.

        Foreign ids are refused before lookup, so non-owners cannot probe
        which organizations exist.
        """
        enforce(actor, Action.ACCESS_ORGANIZATION, organization_id)
        organization = await OrganizationService._get(db, organization_id)

        user_count = await db.execute(
            select(func.count(User.id)).where(
                User.organization_id == organization.id,
                User.status != UserStatus.DELETED.value,
            )
        )
        usage = await quota_accountant.usage(db, organization)
        return build_detail(organization, user_count.scalar_one(), usage.used_bytes)

    @staticmethod
    async def create(db: AsyncSession, actor: User, data: OrganizationCreate) -> Organization:
        enforce(actor, Action.PLATFORM)
        await OrganizationService._ensure_name_free(db, data.name)

        organization = Organization(
            name=data.name,
            description=data.description,
            storage_quota=data.storage_quota,
            status=OrganizationStatus.ACTIVE.value,
        )
        db.add(organization)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.ORGANIZATION,
            resource_id=organization.id,
            details={"name": organization.name, "storageQuota": organization.storage_quota},
            actor=actor,
            organization_id=organization.id,
        )
        await invalidate_dashboard()
        logger.info("organization_created", organization_id=organization.id)
        return organization

    @staticmethod
    async def update(
        db: AsyncSession,
        actor: User,
        organization_id: str,
        data: OrganizationUpdate,
    ) -> Organization:
        enforce(actor, Action.PLATFORM)
        organization = await OrganizationService._get(db, organization_id)
        if organization.status == OrganizationStatus.DELETED.value:
            raise not_found("Organization not found")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            await OrganizationService._ensure_name_free(db, changes["name"], exclude_id=organization.id)

        for field, value in changes.items():
            setattr(organization, field, value)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.ORGANIZATION,
            resource_id=organization.id,
            details=changes,
            actor=actor,
            organization_id=organization.id,
        )
        await invalidate_dashboard()
        return organization

    @staticmethod
    async def delete(db: AsyncSession, actor: User, organization_id: str) -> Organization:
        """Soft-delete an organization that no longer has active users."""
        enforce(actor, Action.PLATFORM)
        organization = await OrganizationService._get(db, organization_id)
        if organization.status == OrganizationStatus.DELETED.value:
            raise not_found("Organization not found")

        active_users = await db.execute(
            select(func.count(User.id)).where(
                User.organization_id == organization.id,
                User.status == UserStatus.ACTIVE.value,
            )
        )
        if active_users.scalar_one() > 0:
            raise bad_request("Cannot delete organization with active users")

        organization.status = OrganizationStatus.DELETED.value
        organization.deleted_at = utcnow()
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DELETE,
            resource_type=ResourceType.ORGANIZATION,
            resource_id=organization.id,
            details={"name": organization.name},
            actor=actor,
            organization_id=organization.id,
        )
        await invalidate_dashboard()
        logger.info("organization_deleted", organization_id=organization.id)
        return organization

    @staticmethod
    async def list_users(
        db: AsyncSession,
        actor: User,
        organization_id: str,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        enforce(actor, Action.ADMIN)
        enforce(actor, Action.ACCESS_ORGANIZATION, organization_id)
        await OrganizationService._get(db, organization_id)

        return await (
            QueryBuilder(db, User)
            .filter(
                User.organization_id == organization_id,
                User.status != UserStatus.DELETED.value,
            )
            .order_by(User.created_at, "desc")
            .paginate(page=page, limit=limit)
            .execute()
        )

    @staticmethod
    async def top_by_usage(db: AsyncSession, limit: int = 5) -> list[TopOrganization]:
        storage = _storage_subquery()
        rows = await db.execute(
            select(Organization, storage.c.storage_used, storage.c.file_count)
            .join(storage, storage.c.organization_id == Organization.id)
            .where(Organization.status == OrganizationStatus.ACTIVE.value)
            .order_by(storage.c.storage_used.desc())
            .limit(limit)
        )
        return [
            TopOrganization(
                id=org.id,
                name=org.name,
                storage_used=used,
                storage_quota=org.storage_quota,
                file_count=file_count,
            )
            for org, used, file_count in rows.all()
        ]

    @staticmethod
    async def stats(db: AsyncSession, actor: User) -> OrganizationStats:
        enforce(actor, Action.PLATFORM)

        by_status = dict(
            (await db.execute(
                select(Organization.status, func.count()).group_by(Organization.status)
            )).all()
        )
        quota_total = await db.execute(
            select(func.coalesce(func.sum(Organization.storage_quota), 0)).where(
                Organization.status == OrganizationStatus.ACTIVE.value
            )
        )
        used_total = await db.execute(
            select(func.coalesce(func.sum(File.file_size), 0)).where(
                File.status == FileStatus.ACTIVE.value
            )
        )

        active = by_status.get(OrganizationStatus.ACTIVE.value, 0)
        deleted = by_status.get(OrganizationStatus.DELETED.value, 0)
        return OrganizationStats(
            total=active + deleted,
            active=active,
            deleted=deleted,
            total_storage_used=int(used_total.scalar_one()),
            total_storage_quota_bytes=mb_to_bytes(int(quota_total.scalar_one())),
            top_by_usage=await OrganizationService.top_by_usage(db),
        )


# Singleton instance
organization_service = OrganizationService()
