"""
User management business logic.
"""

from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, conflict, forbidden, not_found
from app.core.logging_config import get_logger
from app.core.query_helpers import PageResult, QueryBuilder
from app.core.security import hash_password, verify_password
from app.core.timeutil import utcnow
from app.models.organization import Organization, OrganizationStatus
from app.models.user import Role, User, UserStatus
from app.schemas.user import PasswordChange, UserCreate, UserStats, UserUpdate

logger = get_logger(__name__)

EMAIL_TAKEN_MESSAGE = "User already exists with this email"


class UserService:
    """User service with business logic."""

    @staticmethod
    async def _require_active_organization(db: AsyncSession, organization_id: str | None) -> str:
        if not organization_id:
            raise bad_request("organization_id is required")
        organization = await db.get(Organization, organization_id)
        if organization is None or organization.status != OrganizationStatus.ACTIVE.value:
            raise bad_request("Invalid organization")
        return organization_id

    @staticmethod
    async def _ensure_email_free(db: AsyncSession, email: str, exclude_id: str | None = None) -> None:
        query = select(User.id).where(User.email == email)
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise conflict(EMAIL_TAKEN_MESSAGE)

    @staticmethod
    async def get(db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise not_found("User not found")
        return user

    @staticmethod
    async def create(db: AsyncSession, actor: User, data: UserCreate) -> User:
        """
        Create a user on behalf of an administrator.

        Organization admins create users in their own organization only and
        cannot create platform owners. Platform owners name the organization
        unless the new user is a platform owner too.
        """
        enforce(actor, Action.ADMIN)

        role = data.role.value
        if role == Role.PLATFORM_OWNER.value:
            enforce(actor, Action.PLATFORM, message="Only platform owners can create platform owners")
            organization_id = None
        elif actor.is_platform_owner:
            organization_id = await UserService._require_active_organization(db, data.organization_id)
        else:
            if data.organization_id and data.organization_id != actor.organization_id:
                raise forbidden("Access denied. Organization access required.")
            organization_id = actor.organization_id

        email = data.email.lower()
        await UserService._ensure_email_free(db, email)

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=role,
            organization_id=organization_id,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={"email": user.email, "role": role},
            actor=actor,
            organization_id=organization_id,
        )

        logger.info("user_created", user_id=user.id, created_by=actor.id, role=role)
        return user

    @staticmethod
    async def list_users(
        db: AsyncSession,
        actor: User,
        q: str | None = None,
        role: Role | None = None,
        status: UserStatus | None = None,
        organization_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        """List users; deleted accounts only appear when asked for by status."""
        enforce(actor, Action.ADMIN)

        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        builder = (
            QueryBuilder(db, User)
            .filter_if(organization_id, User.organization_id == organization_id)
            .filter_if(role, User.role == (role.value if role else None))
            .search(q, User.first_name, User.last_name, User.email)
        )
        if status is not None:
            builder.filter(User.status == status.value)
        else:
            builder.filter(User.status != UserStatus.DELETED.value)

        return await (
            builder
            .order_by(User.created_at, "desc")
            .paginate(page=page, limit=limit)
            .execute()
        )

    @staticmethod
    async def get_for(db: AsyncSession, actor: User, user_id: str) -> User:
        """Read one user: yourself, or anyone in your organization as an admin."""
        user = await UserService.get(db, user_id)
        enforce(actor, Action.SELF_OR_ADMIN, user)
        return user

    @staticmethod
    async def update(db: AsyncSession, actor: User, user_id: str, data: UserUpdate) -> User:
        enforce(actor, Action.ADMIN)
        user = await UserService.get(db, user_id)
        enforce(actor, Action.MANAGE_USER, user)

        # Null leaves a field unchanged; organization_id follows the role
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if not actor.is_platform_owner:
            if "organization_id" in changes and changes["organization_id"] != user.organization_id:
                raise forbidden("Cannot move users to another organization")
            if changes.get("role") == Role.PLATFORM_OWNER:
                raise forbidden("Cannot grant platform owner role")

        if "email" in changes:
            changes["email"] = changes["email"].lower()
            await UserService._ensure_email_free(db, changes["email"], exclude_id=user.id)

        new_role = changes.get("role") or user.role
        new_role = new_role.value if isinstance(new_role, Role) else new_role
        new_org = changes.get("organization_id", user.organization_id)
        if new_role == Role.PLATFORM_OWNER.value:
            new_org = None
        elif new_org != user.organization_id or user.organization_id is None:
            new_org = await UserService._require_active_organization(db, new_org)

        for field in ("email", "first_name", "last_name"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])
        if changes.get("status") is not None:
            user.status = changes["status"].value
            user.deleted_at = utcnow() if user.status == UserStatus.DELETED.value else None
        user.role = new_role
        user.organization_id = new_org

        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={k: v for k, v in changes.items() if v is not None},
            actor=actor,
            organization_id=user.organization_id,
        )
        return user

    @staticmethod
    async def change_password(
        db: AsyncSession,
        actor: User,
        user_id: str,
        data: PasswordChange,
    ) -> None:
        """
        Change a password.

        Changing your own password requires the current one; admins
        resetting someone else's do not.
        """
        user = await UserService.get(db, user_id)
        enforce(actor, Action.SELF_OR_ADMIN, user)

        if user.id == actor.id:
            if not data.current_password or not verify_password(data.current_password, user.password_hash):
                raise bad_request("Current password is incorrect")

        user.password_hash = hash_password(data.new_password)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={"passwordChanged": True},
            actor=actor,
            organization_id=user.organization_id,
        )

    @staticmethod
    async def delete(db: AsyncSession, actor: User, user_id: str) -> User:
        """Soft-delete a user."""
        enforce(actor, Action.ADMIN)
        if user_id == actor.id:
            raise bad_request("Cannot delete your own account")

        user = await UserService.get(db, user_id)
        enforce(actor, Action.MANAGE_USER, user)

        if user.status == UserStatus.DELETED.value:
            raise not_found("User not found")

        user.status = UserStatus.DELETED.value
        user.deleted_at = utcnow()
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DELETE,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={"email": user.email},
            actor=actor,
            organization_id=user.organization_id,
        )
        logger.info("user_deleted", user_id=user.id, deleted_by=actor.id)
        return user

    @staticmethod
    async def stats(db: AsyncSession, actor: User) -> UserStats:
        """Counts by role and status, scoped to the admin's organization."""
        enforce(actor, Action.ADMIN)

        scope = []
        if not actor.is_platform_owner:
            scope.append(User.organization_id == actor.organization_id)

        by_role_rows = await db.execute(
            select(User.role, func.count())
            .where(*scope, User.status != UserStatus.DELETED.value)
            .group_by(User.role)
        )
        by_status_rows = await db.execute(
            select(User.status, func.count()).where(*scope).group_by(User.status)
        )
        recent = await db.execute(
            select(func.count())
            .select_from(User)
            .where(*scope, User.created_at >= utcnow() - timedelta(days=30))
        )

        by_role = {role.value: 0 for role in Role}
        by_role.update({row[0]: row[1] for row in by_role_rows.all()})
        by_status = {s.value: 0 for s in UserStatus}
        by_status.update({row[0]: row[1] for row in by_status_rows.all()})

        return UserStats(
            total=sum(v for k, v in by_status.items() if k != UserStatus.DELETED.value),
            by_role=by_role,
            by_status=by_status,
            new_last_30_days=recent.scalar_one(),
        )


# Singleton instance
user_service = UserService()
