from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_SESSION_SECRET = "default-session-secret-change-in-production"


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, list):
        return v
    if v == "":
        return []
    return [i.strip() for i in v.split(",") if i.strip()]


class Settings(BaseSettings):
    """
    アプリケーション設定

    期間を表す値はすべて秒単位
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # 未定義のフィールドを無視
    )

    ENV_MODE: Literal["development", "production", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "ENV_MODE"),
    )

    BACKEND_CORS_ORIGINS: str | list[str] = []

    @field_validator("BACKEND_CORS_ORIGINS")
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str]) -> list[str]:
        if v == "*":
            return ["*"]
        return _split_csv(v)

    REDIS_URL: Optional[str] = None
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def redis_url(self) -> str:
        """Redis接続URL"""
        if self.REDIS_URL:
            return self.REDIS_URL
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # セッション
    SESSION_SECRET: str = DEFAULT_SESSION_SECRET
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_TIMEOUT: int = 60 * 60  # 1 hour (idle)
    SESSION_ABSOLUTE_TIMEOUT: int = 60 * 60 * 24  # 1 day
    MAX_SESSIONS_PER_USER: int = 5

    # ウォレットセッション
    WALLET_SESSION_TIMEOUT: int = 60 * 60 * 2  # 2 hours
    WALLET_REFRESH_THRESHOLD: int = 60 * 30  # 30 minutes

    # Redis上のレコードの猶予（アプリ側の最長の期限にこの秒数を足してTTLとする）
    SESSION_RECORD_TTL_GRACE: int = 60 * 5

    SESSION_ENCRYPTION_KEY: str = ""

    @field_validator("SESSION_ENCRYPTION_KEY")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        """暗号化キー検証"""
        if not v:
            logger.warning(
                "SESSION_ENCRYPTION_KEY is not set. "
                "Session records will be encrypted with a key derived from SESSION_SECRET."
            )
            return ""

        try:
            from cryptography.fernet import Fernet

            Fernet(v.encode())
        except Exception:
            raise ValueError(
                'Invalid SESSION_ENCRYPTION_KEY format. Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"'
            )

        return v

    SESSION_AUDIT_LOG_PATH: str = "logs/session-audit.log"

    # CSRF
    CSRF_COOKIE_NAME: str = "csrf-token"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_BODY_FIELD: str = "_csrf"
    CSRF_TOKEN_LENGTH: int = 32
    CSRF_TOKEN_EXPIRY: int = 60 * 60 * 24  # 24 hours
    CSRF_EXEMPT_PREFIXES: str | list[str] = ["/auth/", "/api/auth/"]

    # セキュリティチェーン
    LOGIN_PATHS: str | list[str] = ["/api/auth/login", "/auth/login"]
    FINGERPRINT_SIMILARITY_THRESHOLD: float = 0.8
    LOCATION_HISTORY_LIMIT: int = 10
    LOCATION_CHANGE_WINDOW: int = 60
    RATE_LIMIT_MAX_ATTEMPTS: int = 100
    RATE_LIMIT_WINDOW: int = 60 * 15  # 15 minutes

    @field_validator("CSRF_EXEMPT_PREFIXES", "LOGIN_PATHS")
    @classmethod
    def split_path_list(cls, v: str | list[str]) -> list[str]:
        return _split_csv(v)

    # セキュリティイベント
    SECURITY_EVENT_LIMIT: int = 50
    SECURITY_EVENT_TTL: int = 60 * 60 * 24 * 7  # 7 days
    RISK_EVENT_WINDOW: int = 60 * 60 * 24
    FAILED_LOGIN_TTL: int = 60 * 15

    # バッチ
    SESSION_HEALTH_CHECK_SCHEDULE: Optional[str] = "*/5 * * * *"
    SESSION_SWEEP_SCHEDULE: Optional[str] = None  # cron形式 (例: "*/10 * * * *")

    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 1.0

    @field_validator("SENTRY_DSN")
    @classmethod
    def sentry_dsn_can_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return v

    @property
    def login_paths(self) -> list[str]:
        return _split_csv(self.LOGIN_PATHS)

    @property
    def csrf_exempt_prefixes(self) -> list[str]:
        return _split_csv(self.CSRF_EXEMPT_PREFIXES)

    @property
    def session_record_ttl(self) -> int:
        """
        Redis上のセッションレコードと索引のTTL（秒）

        期限切れは440で応答するため、アイドル・絶対タイムアウトより長く残す
        """
        return (
            max(
                self.SESSION_TIMEOUT,
                self.SESSION_ABSOLUTE_TIMEOUT,
                self.WALLET_SESSION_TIMEOUT,
            )
            + self.SESSION_RECORD_TTL_GRACE
        )

    @property
    def uses_default_secret(self) -> bool:
        """SESSION_SECRETが初期値のままかどうか"""
        return self.SESSION_SECRET == DEFAULT_SESSION_SECRET

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.ENV_MODE == "development"

    @property
    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.ENV_MODE == "production"

    @property
    def is_test(self) -> bool:
        """テスト環境かどうか"""
        return self.ENV_MODE == "test"


@lru_cache
def get_settings() -> Settings:
    """
    アプリケーション設定を取得（キャッシュ）
    """
    return Settings()
