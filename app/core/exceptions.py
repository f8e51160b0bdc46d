"""
Custom exception hierarchy for the application.

Every exception carries the HTTP status it maps to. The handlers in
``app.main`` render them in the standard response envelope.
"""

from typing import Any

from fastapi import status


class FileVaultException(Exception):
    """Base exception for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FileVaultException):
    """Raised when input validation or a business rule pre-check fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(FileVaultException):
    """Raised when a unique field (email, organization name, ...) is taken."""

    status_code = status.HTTP_400_BAD_REQUEST


class QuotaExceededError(FileVaultException):
    """Raised when an organization would exceed its storage quota."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(FileVaultException):
    """Raised when the caller's identity cannot be established."""

    status_code = status.HTTP_401_UNAUTHORIZED


class TokenExpiredError(AuthenticationError):
    """Raised when a token signature is valid but its expiry has passed."""
    pass


class AuthorizationError(FileVaultException):
    """Raised when an authenticated caller lacks privilege or organization access."""

    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(FileVaultException):
    """Raised when a requested resource doesn't exist."""

    status_code = status.HTTP_404_NOT_FOUND


# Shorthand constructors used by routers and services
def unauthorized(detail: str = "Invalid token.") -> AuthenticationError:
    """Return 401 authentication error."""
    return AuthenticationError(detail)


def forbidden(detail: str = "Insufficient permissions") -> AuthorizationError:
    """Return 403 authorization error."""
    return AuthorizationError(detail)


def not_found(detail: str = "Resource not found") -> ResourceNotFoundError:
    """Return 404 not found error."""
    return ResourceNotFoundError(detail)


def bad_request(detail: str = "Bad request") -> ValidationError:
    """Return 400 validation error."""
    return ValidationError(detail)


def conflict(detail: str = "Resource already exists") -> ConflictError:
    """Return 400 conflict error."""
    return ConflictError(detail)
