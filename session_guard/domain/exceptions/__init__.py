"""Domain layer exceptions"""

from .base import (
    BadRequestError,
    CsrfValidationError,
    DeviceMismatchError,
    DomainError,
    ForbiddenError,
    InvalidSessionTokenError,
    NotFoundError,
    RateLimitExceededError,
    SessionExpiredError,
    SessionHijackError,
    SessionServiceError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "NotFoundError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "ValidationError",
    "InvalidSessionTokenError",
    "DeviceMismatchError",
    "SessionHijackError",
    "SessionExpiredError",
    "CsrfValidationError",
    "RateLimitExceededError",
    "SessionServiceError",
]
