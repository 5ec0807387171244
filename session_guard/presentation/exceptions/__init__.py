"""Presentation layer exceptions"""

from .api_errors import (
    HTTP_440_LOGIN_TIMEOUT,
    APIError,
    ErrorResponse,
    domain_error_to_api_error,
)

__all__ = [
    "HTTP_440_LOGIN_TIMEOUT",
    "ErrorResponse",
    "APIError",
    "domain_error_to_api_error",
]
