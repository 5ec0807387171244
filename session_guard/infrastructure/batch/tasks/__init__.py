"""バッチタスク"""

from .session_tasks import (
    SessionHealthCheckTask,
    SessionSweepTask,
    register_session_tasks,
)

__all__ = ["SessionHealthCheckTask", "SessionSweepTask", "register_session_tasks"]
