from .security import (
    LocationEntry,
    RiskAssessment,
    RiskLevel,
    SecurityEvent,
    SecurityEventType,
    Severity,
    TokenPayload,
)
from .session import SessionRecord, SessionType, generate_session_id

__all__ = [
    "SessionRecord",
    "SessionType",
    "generate_session_id",
    "SecurityEvent",
    "SecurityEventType",
    "Severity",
    "RiskAssessment",
    "RiskLevel",
    "TokenPayload",
    "LocationEntry",
]
