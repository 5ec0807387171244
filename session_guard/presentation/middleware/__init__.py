from .csrf import csrf_middleware
from .error_handler import error_response_middleware
from .session import session_security_middleware

__all__ = [
    "csrf_middleware",
    "error_response_middleware",
    "session_security_middleware",
]
