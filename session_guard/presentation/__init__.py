"""Presentation layer - API and middleware"""

from .exceptions import APIError, ErrorResponse, domain_error_to_api_error

__all__ = [
    "APIError",
    "ErrorResponse",
    "domain_error_to_api_error",
]
