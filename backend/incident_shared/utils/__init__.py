"""
Utilities: exceptions and shared schemas.
"""

from incident_shared.utils.exceptions import (
    AppException,
    AuthError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    InvalidStatusError,
    InvalidPushTokenError,
    PersistenceError,
)

__all__ = [
    "AppException",
    "AuthError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "InvalidStatusError",
    "InvalidPushTokenError",
    "PersistenceError",
]
