"""
Application error taxonomy.

Store backends and the principal directory raise these; the facade
services convert them into OperationResult failures. ``public_message``
is the only text that may reach an end user; the exception's own message
can carry provider/store detail and is meant for logs.
"""

from typing import Optional


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_public_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str = "", public_message: Optional[str] = None):
        self.public_message = public_message or self.default_public_message
        super().__init__(message or self.public_message)


class ConfigurationError(AppError):
    """Store unreachable or misconfigured. Not retried."""
    status_code = 503
    code = "CONFIGURATION_ERROR"
    default_public_message = "Authentication service not configured."


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_FAILED"
    default_public_message = "Invalid email or password."


class AuthorizationError(AppError):
    """A policy denied the operation on a row that exists."""
    status_code = 403
    code = "FORBIDDEN"
    default_public_message = "You do not have access to this resource."


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_public_message = "Resource not found."


class ConflictError(AppError):
    """Unique or check constraint violation."""
    status_code = 409
    code = "CONFLICT"
    default_public_message = "Resource already exists."


class TransientStoreError(AppError):
    """Store write/read failed in a way that is safe to retry later."""
    status_code = 503
    code = "TRANSIENT_STORE_ERROR"
    default_public_message = "Database connection issue. Please try again later."


STATUS_BY_CODE = {
    cls.code: cls.status_code
    for cls in (
        AppError,
        ConfigurationError,
        AuthenticationError,
        AuthorizationError,
        NotFoundError,
        ConflictError,
        TransientStoreError,
    )
}
