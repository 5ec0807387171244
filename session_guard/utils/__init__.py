from .session_helper import (
    build_request_context,
    clear_session_cookie,
    get_client_ip,
    get_device_signals,
    get_user_agent,
    set_csrf_token,
    set_session_cookie,
)

__all__ = [
    "build_request_context",
    "clear_session_cookie",
    "get_client_ip",
    "get_device_signals",
    "get_user_agent",
    "set_csrf_token",
    "set_session_cookie",
]
