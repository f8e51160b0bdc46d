"""
Audit log endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.features.audit.service import AuditFilter, audit_service
from app.features.auth.dependencies import AdminUser, DBSession, PlatformOwner
from app.schemas.audit import AuditFilterOptions, AuditLogDetail, AuditStats
from app.schemas.common import APIResponse, Page, ok

router = APIRouter(prefix="/audit", tags=["Audit"])


def audit_filters(
    q: str | None = Query(None, max_length=255, description="Search action, resource type, details"),
    action: str | None = None,
    resource_type: str | None = None,
    start_date: str | None = Query(None, alias="startDate", description="ISO date or datetime"),
    end_date: str | None = Query(None, alias="endDate", description="Inclusive; a bare date covers the whole day"),
    user_id: str | None = None,
    organization_id: str | None = Query(None, description="Platform owners only"),
) -> AuditFilter:
    return AuditFilter(
        q=q,
        action=action,
        resource_type=resource_type,
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
        organization_id=organization_id,
    )


Filters = Annotated[AuditFilter, Depends(audit_filters)]


@router.get("/", response_model=APIResponse[Page[AuditLogDetail]])
async def list_audit_logs(
    current_user: AdminUser,
    db: DBSession,
    filters: Filters,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """
    Audit entries, newest first.

    Organization admins only see their organization's entries.
    """
    result = await audit_service.list_entries(db, current_user, filters, page=page, limit=limit)
    return ok(Page[AuditLogDetail].from_result(result))


@router.get("/stats/overview", response_model=APIResponse[AuditStats])
async def audit_stats(current_user: AdminUser, db: DBSession):
    """Counts by action and resource type, and daily activity for the last 7 days."""
    return ok(await audit_service.stats(db, current_user))


@router.get("/filters/options", response_model=APIResponse[AuditFilterOptions])
async def filter_options(current_user: AdminUser, db: DBSession):
    return ok(await audit_service.filter_options(db, current_user))


@router.get("/export/csv")
async def export_csv(current_user: PlatformOwner, db: DBSession, filters: Filters):
    """Download matching entries as CSV (platform owner only)."""
    filename, content = await audit_service.export_csv(db, current_user, filters)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{entry_id}", response_model=APIResponse[AuditLogDetail])
async def get_audit_log(entry_id: int, current_user: AdminUser, db: DBSession):
    return ok(await audit_service.get(db, current_user, entry_id))
