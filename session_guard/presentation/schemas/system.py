"""システム関連のスキーマ定義"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """
    ヘルスチェックレスポンス

    Attributes:
        status: 全体的なヘルス状態（healthy/warning/unhealthy）
        timestamp: レスポンス生成時刻
        uptime_seconds: アプリケーション起動からの経過秒数
        environment: 実行環境（development/production/test）
        checks: チェックごとの結果
        metrics: セッション統計
        alerts: 警告メッセージ
    """

    status: Literal["healthy", "warning", "unhealthy"]
    timestamp: datetime
    uptime_seconds: float
    environment: str
    checks: dict[str, Any] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
    alerts: list[str] = Field(default_factory=list)
