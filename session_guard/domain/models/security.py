"""セキュリティイベント・リスク評価・トークンのドメインモデル"""

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """セキュリティイベントの重大度"""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SecurityEventType(str, Enum):
    """システムが発行するセキュリティイベント種別"""

    LOCATION_CHANGE = "LOCATION_CHANGE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SESSION_HIJACK_ATTEMPT = "SESSION_HIJACK_ATTEMPT"
    DEVICE_MISMATCH = "DEVICE_MISMATCH"
    DEVICE_TRUSTED = "DEVICE_TRUSTED"
    SESSION_TERMINATED = "SESSION_TERMINATED"
    ALL_SESSIONS_TERMINATED = "ALL_SESSIONS_TERMINATED"
    SESSION_LIMIT_EXCEEDED = "SESSION_LIMIT_EXCEEDED"
    CSRF_VALIDATION_FAILED = "CSRF_VALIDATION_FAILED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SecurityEvent(_CamelModel):
    """
    ユーザー単位で蓄積されるセキュリティイベント

    event_type はユーザー報告の任意文字列も受け付けるため str とする。
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    event_type: str
    severity: Severity
    timestamp: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RiskAssessment(_CamelModel):
    """セッションのリスク評価結果（参考値）"""

    risk_score: int
    risk_level: RiskLevel
    risk_factors: list[str] = Field(default_factory=list)


class TokenPayload(_CamelModel):
    """暗号化セッショントークンの中身"""

    user_id: Optional[str] = None
    wallet_address: str
    issued_at: float
    token_id: str


class LocationEntry(_CamelModel):
    """位置情報履歴の1エントリ"""

    country: str
    ip: str
    timestamp: float
