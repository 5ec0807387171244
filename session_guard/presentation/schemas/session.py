"""認証・セッション関連のスキーマ定義"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...domain.models import Severity


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_CamelModel):
    """
    ウォレットログインリクエスト

    署名の検証は認証サービス側で済んでいる前提
    """

    wallet_address: str = Field(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9]+$")
    user_id: Optional[str] = Field(default=None, max_length=128)
    wallet_type: Optional[str] = Field(default=None, max_length=64)


class SecurityReportRequest(_CamelModel):
    """ユーザーからのセキュリティイベント報告"""

    event_type: str = Field(min_length=1, max_length=64)
    severity: Severity
    description: Optional[str] = Field(default=None, max_length=1000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SuccessResponse(BaseModel):
    """
    標準成功レスポンス

    Attributes:
        success: 常にTrue
        data: レスポンスデータ
        message: メッセージ
    """

    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None
