"""
Storage quota accounting.

Usage is the sum of ``file_size`` over an organization's active files;
the quota is ``storage_quota`` MB with 1 MB = 1024 * 1024 bytes.

Check and insert run as one serialized step per organization: an
in-process lock keyed by organization id plus a row lock on the
organization (``SELECT ... FOR UPDATE``) for deployments with several
workers. The metadata row is committed before the lock is released.
Any failure inside the step, including the quota rejection itself,
removes the blob that was already written.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import QuotaExceededError, ValidationError
from app.core.logging_config import get_logger
from app.core.metrics import orphan_cleanup_failures_total, quota_rejections_total
from app.models.file import File, FileStatus
from app.models.organization import BYTES_PER_MB, Organization, OrganizationStatus

logger = get_logger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "Storage quota exceeded. Please contact your administrator to increase storage quota."
)

Cleanup = Callable[[], Awaitable[object]]


def mb_to_bytes(megabytes: int) -> int:
    """Binary megabytes to bytes."""
    return megabytes * BYTES_PER_MB


@dataclass(frozen=True)
class QuotaUsage:
    """Snapshot of an organization's storage consumption."""

    quota_bytes: int
    used_bytes: int

    @property
    def available_bytes(self) -> int:
        return max(0, self.quota_bytes - self.used_bytes)

    @property
    def usage_percentage(self) -> float:
        if self.quota_bytes <= 0:
            return 100.0 if self.used_bytes else 0.0
        return round(self.used_bytes / self.quota_bytes * 100, 2)

    def admits(self, size: int) -> bool:
        return self.used_bytes + size <= self.quota_bytes


class QuotaAccountant:
    """Computes usage and serializes quota-guarded writes per organization."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, organization_id: str) -> asyncio.Lock:
        lock = self._locks.get(organization_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[organization_id] = lock
        return lock

    async def current_usage(self, db: AsyncSession, organization_id: str) -> int:
        """Bytes used by active files of the organization."""
        result = await db.execute(
            select(func.coalesce(func.sum(File.file_size), 0)).where(
                File.organization_id == organization_id,
                File.status == FileStatus.ACTIVE.value,
            )
        )
        return int(result.scalar_one())

    async def usage(self, db: AsyncSession, organization: Organization) -> QuotaUsage:
        """Quota and usage for one organization."""
        used = await self.current_usage(db, organization.id)
        return QuotaUsage(quota_bytes=mb_to_bytes(organization.storage_quota), used_bytes=used)

    @asynccontextmanager
    async def reserve(
        self,
        db: AsyncSession,
        organization_id: str,
        size: int,
        cleanup: Cleanup | None = None,
    ) -> AsyncIterator[Organization]:
        """
        Admit ``size`` more bytes for the organization.

        The body runs while the organization is locked; it should add the
        rows that consume the space. On normal exit the session is
        committed. If the quota is exceeded, the organization is missing,
        or the body or commit fails, the transaction is rolled back and
        ``cleanup`` is awaited before the error propagates.

        Usage:
            async with quota_accountant.reserve(db, org_id, size, cleanup=remove_blob):
                db.add(File(...))

        Raises:
            QuotaExceededError: used + size > quota
            ValidationError: Organization missing or not active
        """
        async with self._lock_for(organization_id):
            try:
                result = await db.execute(
                    select(Organization)
                    .where(Organization.id == organization_id)
                    .with_for_update()
                )
                organization = result.scalar_one_or_none()

                if organization is None or organization.status != OrganizationStatus.ACTIVE.value:
                    raise ValidationError("Organization not found")

                usage = await self.usage(db, organization)
                if not usage.admits(size):
                    quota_rejections_total.labels(organization_id=organization_id).inc()
                    logger.warning(
                        "quota_exceeded",
                        organization_id=organization_id,
                        requested_bytes=size,
                        used_bytes=usage.used_bytes,
                        quota_bytes=usage.quota_bytes,
                    )
                    raise QuotaExceededError(
                        QUOTA_EXCEEDED_MESSAGE,
                        details={
                            "requested_bytes": size,
                            "used_bytes": usage.used_bytes,
                            "quota_bytes": usage.quota_bytes,
                        },
                    )

                yield organization
                await db.commit()

            except BaseException:
                await db.rollback()
                await self._run_cleanup(cleanup, organization_id)
                raise

    async def _run_cleanup(self, cleanup: Cleanup | None, organization_id: str) -> None:
        if cleanup is None:
            return
        try:
            await cleanup()
        except Exception as e:
            orphan_cleanup_failures_total.inc()
            logger.error(
                "orphan_cleanup_failed",
                organization_id=organization_id,
                error=str(e),
                exc_info=True,
            )


# Global instance
quota_accountant = QuotaAccountant()
