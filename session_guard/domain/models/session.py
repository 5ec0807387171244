"""セッションレコードのドメインモデル"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SessionType(str, Enum):
    """セッション種別"""

    STANDARD = "standard"
    WALLET_ONLY = "wallet-only"


def generate_session_id() -> str:
    """
    セッションIDを生成

    Returns:
        UUID4文字列
    """
    return str(uuid.uuid4())


class SessionRecord(BaseModel):
    """
    セッションレコード

    セッションストアに暗号化して保存される。ミドルウェアチェーンでは
    同じインスタンスを request.state.session として各ステージに渡す。

    Attributes:
        session_id: セッションID（生成後は不変）
        user_id: 認証済みユーザーID（ウォレットのみのセッションではNone）
        wallet_address: 認証に使われたウォレットアドレス
        token: 暗号化セッショントークン（リフレッシュ時にローテーション）
        session_type: standard / wallet-only
        user_agent: 作成時のUser-Agent
        ip_address: 作成時のIPアドレス
        device_fingerprint: 最初の認証済みリクエストで記録したフィンガープリント
        trusted_device: 信頼済み端末かどうか
        csrf_token: 現在のCSRFトークン
        csrf_token_expiry: CSRFトークンの有効期限（epoch秒）
        last_accessed: 最終アクセス時刻（epoch秒、アイドルタイムアウト判定用）
        created_at: 作成時刻（epoch秒）
        authenticated_at: 認証時刻（epoch秒、絶対タイムアウト判定用）
        is_active: ログアウト・無効化後はFalse
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, use_enum_values=False
    )

    session_id: str = Field(default_factory=generate_session_id)
    user_id: Optional[str] = None
    wallet_address: str
    token: str = ""
    session_type: SessionType = SessionType.WALLET_ONLY
    wallet_type: Optional[str] = None
    user_agent: str = ""
    ip_address: str = ""
    device_fingerprint: Optional[str] = None
    trusted_device: bool = False
    csrf_token: Optional[str] = None
    csrf_token_expiry: Optional[float] = None
    last_accessed: float
    created_at: float
    authenticated_at: float
    refreshed_at: Optional[float] = None
    is_active: bool = True

    @property
    def principal(self) -> str:
        """
        同時セッション数の集計単位

        ユーザーIDがあればユーザーID、なければウォレットアドレス
        """
        return self.user_id or self.wallet_address

    @property
    def is_wallet_only(self) -> bool:
        return self.session_type == SessionType.WALLET_ONLY

    def to_storage(self) -> dict:
        """ストア保存用のJSON互換dict"""
        return self.model_dump(mode="json", by_alias=True)
