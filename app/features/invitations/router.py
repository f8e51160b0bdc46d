"""
Invitation endpoints.
"""

from fastapi import APIRouter, Query, status

from app.features.auth.dependencies import AdminUser, DBSession
from app.features.invitations.service import invitation_service
from app.models.invitation import InvitationStatus
from app.schemas.common import APIResponse, Page, ok
from app.schemas.invitation import InvitationCreate, InvitationRead, InvitationValidation

router = APIRouter(prefix="/invitations", tags=["Invitations"])


@router.post("/", response_model=APIResponse[InvitationRead], status_code=status.HTTP_201_CREATED)
async def create_invitation(data: InvitationCreate, current_user: AdminUser, db: DBSession):
    """
    Create an invitation code.

    - Organization admins: into their own organization
    - Platform owners: ``organization_id`` required
    """
    invitation = await invitation_service.create(db, current_user, data)
    return ok(InvitationRead.model_validate(invitation), message="Invitation created successfully")


@router.get("/", response_model=APIResponse[Page[InvitationRead]])
async def list_invitations(
    current_user: AdminUser,
    db: DBSession,
    status: InvitationStatus | None = None,
    organization_id: str | None = Query(None, description="Platform owners only"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    result = await invitation_service.list_invitations(
        db, current_user, status=status, organization_id=organization_id, page=page, limit=limit
    )
    return ok(Page[InvitationRead].from_result(result, InvitationRead))


@router.get("/validate/{code}", response_model=APIResponse[InvitationValidation])
async def validate_invitation(code: str, db: DBSession):
    """Check whether a code can be redeemed (no authentication)."""
    return ok(await invitation_service.validate(db, code))


@router.delete("/{invitation_id}", response_model=APIResponse[InvitationRead])
async def cancel_invitation(invitation_id: str, current_user: AdminUser, db: DBSession):
    """Cancel an active invitation; the record is kept."""
    invitation = await invitation_service.cancel(db, current_user, invitation_id)
    return ok(InvitationRead.model_validate(invitation), message="Invitation cancelled successfully")
