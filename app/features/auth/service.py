"""
Authentication business logic.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import (
    AuthenticationError,
    TokenExpiredError,
    bad_request,
    conflict,
    forbidden,
    unauthorized,
)
from app.core.logging_config import get_logger
from app.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from app.core.timeutil import utcnow
from app.features.auth.schemas import AccessTokenResponse, RegisterRequest, TokenResponse
from app.features.invitations.service import invitation_service
from app.models.organization import Organization, OrganizationStatus
from app.models.user import Role, User, UserStatus

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INACTIVE_ACCOUNT_MESSAGE = "Account is not active"
EMAIL_TAKEN_MESSAGE = "User already exists with this email"


class AuthService:
    """Authentication service with business logic."""

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def register(db: AsyncSession, data: RegisterRequest) -> User:
        """
        Register a user into an organization.

        With an invitation code the invitation decides organization and
        role, and is consumed in the same transaction as the user insert.
        Otherwise the user joins ``organization_id`` as a member.

        Raises:
            ConflictError: Email already registered
            ValidationError: Bad invitation code or organization
        """
        email = data.email.lower()
        if await AuthService.get_by_email(db, email):
            raise conflict(EMAIL_TAKEN_MESSAGE)

        invitation = None
        if data.invitation_code:
            invitation = await invitation_service.lock_for_redemption(db, data.invitation_code)
            organization_id = invitation.organization_id
            role = invitation.role
        else:
            organization_id = data.organization_id
            role = Role.MEMBER.value

        organization = await db.get(Organization, organization_id)
        if organization is None or organization.status != OrganizationStatus.ACTIVE.value:
            raise bad_request("Invalid organization")

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

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise conflict(EMAIL_TAKEN_MESSAGE)

        if invitation is not None:
            invitation_service.mark_used(invitation, user)
        await db.commit()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={
                "email": user.email,
                "role": user.role,
                "viaInvitation": invitation is not None,
            },
            actor=user,
        )

        logger.info("user_registered", user_id=user.id, organization_id=organization_id, role=role)
        return user

    @staticmethod
    async def authenticate(
        db: AsyncSession,
        email: str,
        password: str,
        admin_login: bool = False,
    ) -> User:
        """
        Check credentials and account state.

        Raises:
            AuthenticationError: Unknown email, wrong password, non-active account
            AuthorizationError: ``admin_login`` by a member
        """
        user = await AuthService.get_by_email(db, email)

        if user is None or not verify_password(password, user.password_hash):
            logger.warning("login_failed", email=email)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            logger.warning("login_inactive_account", user_id=user.id, status=user.status)
            raise AuthenticationError(INACTIVE_ACCOUNT_MESSAGE)

        if admin_login and not user.is_admin:
            raise forbidden("Access denied. Admin privileges required.")

        return user

    @staticmethod
    async def login(
        db: AsyncSession,
        email: str,
        password: str,
        admin_login: bool = False,
    ) -> User:
        user = await AuthService.authenticate(db, email, password, admin_login)

        user.last_login = utcnow()
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.LOGIN,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            details={"adminLogin": admin_login},
            actor=user,
        )

        logger.info("user_logged_in", user_id=user.id)
        return user

    @staticmethod
    def generate_tokens(user: User) -> TokenResponse:
        """
        Issue an access/refresh token pair for a user.

        Args:
            user: Authenticated user

        Returns:
            Token response with access and refresh tokens
        """
        return TokenResponse(
            access_token=create_access_token(
                user_id=user.id,
                email=user.email,
                role=user.role,
                organization_id=user.organization_id,
            ),
            refresh_token=create_refresh_token(user.id),
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60,
        )

    @staticmethod
    async def refresh_access_token(
        db: AsyncSession,
        refresh_token: str,
    ) -> AccessTokenResponse:
        """
        Issue a new access token from a refresh token.

        The user is re-read so that role changes and deactivation apply.

        Raises:
            TokenExpiredError: Refresh token expired
            AuthenticationError: Anything else wrong with the token or user
        """
        try:
            payload = verify_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except TokenExpiredError:
            raise TokenExpiredError("Refresh token expired")
        except AuthenticationError:
            raise unauthorized("Invalid refresh token")

        user = await db.get(User, payload["sub"])
        if user is None or not user.is_active:
            raise unauthorized("Invalid refresh token")

        return AccessTokenResponse(
            access_token=create_access_token(
                user_id=user.id,
                email=user.email,
                role=user.role,
                organization_id=user.organization_id,
            ),
            expires_in=settings.access_token_expire_minutes * 60,
        )

    @staticmethod
    async def logout(db: AsyncSession, user: User) -> None:
        await audit_recorder.record(
            db,
            action=AuditAction.LOGOUT,
            resource_type=ResourceType.USER,
            resource_id=user.id,
            actor=user,
        )
        logger.info("user_logged_out", user_id=user.id)


# Singleton instance
auth_service = AuthService()
