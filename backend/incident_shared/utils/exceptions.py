"""
Centralized HTTP exceptions for consistent error handling.

Every exception logs itself on construction, so callers raise without
logging first.

Usage:
    from incident_shared.utils.exceptions import NotFoundError, AuthorizationError

    raise NotFoundError("Report", report_id)
    raise AuthorizationError("update report status")
    raise ValidationError("category is required")
"""

from typing import Any

from fastapi import HTTPException, status

from incident_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 401 Unauthorized
# =============================================================================


class AuthError(AppException):
    """
    Missing, malformed, badly signed or revoked bearer token (401).

    Usage:
        raise AuthError("Token revoked")
    """

    def __init__(self, detail: str = "Unauthorized", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


# =============================================================================
# 403 Forbidden
# =============================================================================


class AuthorizationError(AppException):
    """
    Authenticated principal lacks the required role (403).

    Usage:
        raise AuthorizationError("register push tokens")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Forbidden: only administrators can {action}"
        else:
            detail = "Forbidden"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 404 Not Found
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Report", 123)
        raise NotFoundError("User", username)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 400 Bad Request
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). The caller must correct and resubmit.

    Usage:
        raise ValidationError("address is required")
        raise ValidationError("Invalid status", field="status", value="done")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStatusError(ValidationError):
    """Report status outside the allowed set."""

    def __init__(self, value: str | None, allowed: tuple[str, ...], **log_context: Any):
        detail = f"Invalid status. Must be one of: {', '.join(allowed)}"
        super().__init__(detail, value=value, **log_context)


class InvalidPushTokenError(ValidationError):
    """The push provider reported the token as permanently invalid."""

    def __init__(self, **log_context: Any):
        super().__init__("Invalid push token provided", **log_context)


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class PersistenceError(AppException):
    """
    Store unavailable or write failed (500). Never retried automatically.

    Usage:
        raise PersistenceError("create report", error=str(e))
    """

    def __init__(self, operation: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error",
            log_level="error",
            operation=operation,
            **log_context,
        )
