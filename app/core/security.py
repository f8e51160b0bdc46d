"""
Security utilities for authentication.

Provides:
- Password hashing and verification (bcrypt)
- Access/refresh token issuing and verification (JWT)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.exceptions import AuthenticationError, TokenExpiredError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

INVALID_TOKEN_MESSAGE = "Invalid token."
EXPIRED_TOKEN_MESSAGE = "Token expired. Please login again."

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Bcrypt hash to verify against

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def _encode(claims: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    organization_id: str | None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token carrying the caller's identity claims.

    The claims are informational; every request re-reads the user row,
    so a role or status change takes effect before the token expires.

    Args:
        user_id: Subject
        email: User email
        role: Role at issue time
        organization_id: Organization at issue time (None for platform owners)
        expires_delta: Lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "organization_id": organization_id,
    }
    return _encode(claims, ACCESS_TOKEN_TYPE, expires_delta)


def create_refresh_token(
    user_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a refresh token encoding only the user id.

    Args:
        user_id: Subject
        expires_delta: Lifetime (default: REFRESH_TOKEN_EXPIRE_DAYS)

    Returns:
        Encoded JWT refresh token
    """
    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)

    return _encode({"sub": str(user_id)}, REFRESH_TOKEN_TYPE, expires_delta)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT's signature and expiry.

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise


def verify_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict[str, Any]:
    """
    Verify a token and return its payload.

    Expiry is reported separately from every other failure; malformed
    tokens, bad signatures, wrong token type and missing subject all
    produce the same generic error.

    Raises:
        TokenExpiredError: Signature valid, expiry passed
        AuthenticationError: Anything else
    """
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise TokenExpiredError(EXPIRED_TOKEN_MESSAGE)
    except JWTError:
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)

    if payload.get("type") != expected_type or not payload.get("sub"):
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)

    return payload
