"""
Invitation business logic.

An invitation binds one organization, one role and an expiry to an
opaque single-use code. Codes are drawn from an alphabet without
look-alike characters (no 0/O, 1/I) and carry no decodable structure.
"""

import secrets
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.query_helpers import PageResult, QueryBuilder
from app.core.timeutil import as_utc, utcnow
from app.models.invitation import Invitation, InvitationStatus
from app.models.organization import Organization, OrganizationStatus
from app.models.user import User
from app.schemas.invitation import InvitationCreate, InvitationValidation

logger = get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 10
INVALID_CODE_MESSAGE = "Invalid or expired invitation code"


def generate_code(length: int | None = None) -> str:
    """Random invitation code."""
    length = length or settings.invitation_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    return code.strip().upper()


class InvitationService:
    """Invitation service with business logic."""

    @staticmethod
    async def _unique_code(db: AsyncSession) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_code()
            exists = await db.execute(select(Invitation.id).where(Invitation.code == code))
            if exists.scalar_one_or_none() is None:
                return code
        raise RuntimeError("Could not generate a unique invitation code")

    @staticmethod
    async def create(db: AsyncSession, actor: User, data: InvitationCreate) -> Invitation:
        """
        Create an invitation.

        Organization admins always invite into their own organization;
        platform owners must name the organization.
        """
        enforce(actor, Action.ADMIN)

        if actor.is_platform_owner:
            if not data.organization_id:
                raise bad_request("organization_id is required")
            organization_id = data.organization_id
        else:
            organization_id = actor.organization_id

        enforce(actor, Action.ACCESS_ORGANIZATION, organization_id)

        organization = await db.get(Organization, organization_id)
        if organization is None or organization.status != OrganizationStatus.ACTIVE.value:
            raise bad_request("Invalid organization")

        invitation = Invitation(
            code=await InvitationService._unique_code(db),
            organization_id=organization_id,
            role=data.role,
            expires_at=utcnow() + timedelta(days=data.expires_in_days),
            status=InvitationStatus.ACTIVE.value,
            created_by=actor.id,
        )
        db.add(invitation)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.INVITATION,
            resource_id=invitation.id,
            details={"role": invitation.role, "expiresAt": invitation.expires_at},
            actor=actor,
            organization_id=organization_id,
        )

        logger.info("invitation_created", invitation_id=invitation.id, organization_id=organization_id)
        return invitation

    @staticmethod
    async def list_invitations(
        db: AsyncSession,
        actor: User,
        status: InvitationStatus | None = None,
        organization_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        enforce(actor, Action.ADMIN)

        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        return await (
            QueryBuilder(db, Invitation)
            .filter_if(organization_id, Invitation.organization_id == organization_id)
            .filter_if(status, Invitation.status == (status.value if status else None))
            .order_by(Invitation.created_at, "desc")
            .paginate(page=page, limit=limit)
            .execute()
        )

    @staticmethod
    def _redeemable_reason(invitation: Invitation | None) -> str | None:
        if invitation is None:
            return "Invitation not found"
        if invitation.status != InvitationStatus.ACTIVE.value:
            return f"Invitation has been {invitation.status}"
        if as_utc(invitation.expires_at) <= utcnow():
            return "Invitation has expired"
        return None

    @staticmethod
    async def validate(db: AsyncSession, code: str) -> InvitationValidation:
        """Report whether ``code`` can be redeemed; never raises for bad codes."""
        result = await db.execute(
            select(Invitation).where(Invitation.code == normalize_code(code))
        )
        invitation = result.scalar_one_or_none()

        reason = InvitationService._redeemable_reason(invitation)
        if reason is None:
            organization = await db.get(Organization, invitation.organization_id)
            if organization is None or organization.status != OrganizationStatus.ACTIVE.value:
                reason = "Organization is no longer active"

        if reason is not None:
            return InvitationValidation(valid=False, reason=reason)

        return InvitationValidation(
            valid=True,
            organization_id=organization.id,
            organization_name=organization.name,
            role=invitation.role,
            expires_at=invitation.expires_at,
        )

    @staticmethod
    async def lock_for_redemption(db: AsyncSession, code: str) -> Invitation:
        """
        Fetch an invitation for redemption with its row locked.

        Raises:
            ValidationError: Unknown, used, cancelled or expired code
        """
        result = await db.execute(
            select(Invitation)
            .where(Invitation.code == normalize_code(code))
            .with_for_update()
        )
        invitation = result.scalar_one_or_none()

        reason = InvitationService._redeemable_reason(invitation)
        if reason is not None:
            logger.warning("invitation_redemption_rejected", reason=reason)
            raise bad_request(INVALID_CODE_MESSAGE)
        return invitation

    @staticmethod
    def mark_used(invitation: Invitation, user: User) -> None:
        """Consume the invitation; caller commits together with the new user."""
        invitation.status = InvitationStatus.USED.value
        invitation.used_at = utcnow()
        invitation.used_by = user.id

    @staticmethod
    async def cancel(db: AsyncSession, actor: User, invitation_id: str) -> Invitation:
        """Cancel an active invitation. The row is kept."""
        enforce(actor, Action.ADMIN)

        invitation = await db.get(Invitation, invitation_id)
        if invitation is None:
            raise not_found("Invitation not found")

        enforce(actor, Action.ACCESS_ORGANIZATION, invitation)

        if invitation.status != InvitationStatus.ACTIVE.value:
            raise bad_request("Only active invitations can be cancelled")

        invitation.status = InvitationStatus.CANCELLED.value
        invitation.cancelled_at = utcnow()
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CANCEL,
            resource_type=ResourceType.INVITATION,
            resource_id=invitation.id,
            details={"code": invitation.code},
            actor=actor,
            organization_id=invitation.organization_id,
        )
        return invitation


# Singleton instance
invitation_service = InvitationService()