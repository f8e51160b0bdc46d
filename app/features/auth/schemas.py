"""
Authentication-specific schemas.
"""

from pydantic import EmailStr, Field, field_validator, model_validator

from app.schemas.common import BaseSchema
from app.schemas.user import UserProfile, UserRead, _check_password_length


class RegisterRequest(BaseSchema):
    """
    Self-registration.

    Exactly one of ``organization_id`` (join as member) or
    ``invitation_code`` (join with the invitation's organization and role)
    must be supplied.
    """

    email: EmailStr
    password: str = Field(..., max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    organization_id: str | None = None
    invitation_code: str | None = Field(None, max_length=32)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_length(v)

    @model_validator(mode="after")
    def check_target(self) -> "RegisterRequest":
        if not self.organization_id and not self.invitation_code:
            raise ValueError("Either organization_id or invitation_code is required")
        return self


class LoginRequest(BaseSchema):
    """Login request schema."""

    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., description="User password")
    admin_login: bool = Field(False, description="Require an administrator role")


class TokenResponse(BaseSchema):
    """Token response schema."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class AccessTokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshTokenRequest(BaseSchema):
    """Refresh token request."""

    refresh_token: str = Field(..., description="Valid refresh token")


class AuthResult(BaseSchema):
    """User plus a fresh token pair."""

    user: UserRead
    tokens: TokenResponse


class VerifyResult(BaseSchema):
    valid: bool = True
    user: UserProfile
