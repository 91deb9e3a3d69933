"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Authorization errors (403)
    FORBIDDEN = "FORBIDDEN"

    # Not found errors (404)
    UNKNOWN_RECIPIENT = "UNKNOWN_RECIPIENT"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_EVENT_TYPE = "INVALID_EVENT_TYPE"
    INVALID_CATEGORY = "INVALID_CATEGORY"
    INVALID_SUBSCRIPTION = "INVALID_SUBSCRIPTION"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Unavailable (503)
    SERVICE_NOT_CONFIGURED = "SERVICE_NOT_CONFIGURED"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class AuthorizationError(AppException):
    """Authorization failed."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            error_code=ErrorCode.FORBIDDEN,
            message=message,
            status_code=403,
        )


class InvalidEventTypeError(AppException):
    """The event type is not part of the notification catalog."""

    def __init__(self, event_type: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_EVENT_TYPE,
            message=f"Unknown notification type: {event_type}",
            status_code=400,
            details={"event_type": event_type},
        )


class InvalidCategoryError(AppException):
    """The category is not a known notification category."""

    def __init__(self, category: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_CATEGORY,
            message=f"Unknown notification category: {category}",
            status_code=400,
            details={"category": category},
        )


class UnknownRecipientError(AppException):
    """Notification recipient does not exist."""

    def __init__(self, recipient_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.UNKNOWN_RECIPIENT,
            message=f"Notification recipient not found: {recipient_id}",
            status_code=404,
            details={"recipient_id": recipient_id},
        )


class InvalidSubscriptionError(AppException):
    """A device registration is missing its push target or carries unusable keys."""

    def __init__(self, message: str = "Push subscription is incomplete") -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_SUBSCRIPTION,
            message=message,
            status_code=400,
        )


class ServiceNotConfiguredError(AppException):
    """A delivery provider has no credentials in this environment."""

    def __init__(self, service: str) -> None:
        super().__init__(
            error_code=ErrorCode.SERVICE_NOT_CONFIGURED,
            message=f"{service} is not configured",
            status_code=503,
            details={"service": service},
        )
