"""FastAPIアプリケーションファクトリー"""

import logging
from collections.abc import Callable
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from ..application.services import build_services
from ..presentation.api import api_router
from ..presentation.exception_handlers import register_exception_handlers
from ..presentation.middleware import (
    csrf_middleware,
    error_response_middleware,
    session_security_middleware,
)
from .config import Settings, get_settings
from .lifespan import lifespan
from .logging import get_logger
from .monitoring import init_monitoring

logger = get_logger(__name__)


class HealthCheckFilter(logging.Filter):
    """ヘルスチェックログを除外するフィルター"""

    def filter(self, record: logging.LogRecord) -> bool:
        """
        ログレコードをフィルタリング

        Args:
            record: ログレコード

        Returns:
            ログを出力する場合True、除外する場合False
        """
        return "/api/system/healthcheck" not in record.getMessage()


def create_app(
    settings: Optional[Settings] = None,
    redis_client: Optional[Redis] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """
    FastAPIアプリケーションを生成

    Args:
        settings: アプリケーション設定（Noneなら環境変数から読み込む）
        redis_client: Redisクライアント（Noneなら設定から作成）
        clock: 現在時刻（epoch秒）を返す関数

    Returns:
        FastAPIアプリケーションインスタンス
    """
    settings = settings or get_settings()
    init_monitoring(settings)

    # アプリケーションパラメータ
    app_params: dict[str, Any] = {
        "title": "Session Guard",
        "description": "ウォレット認証コミュニティ向けのセッションセキュリティAPI",
        "version": "0.1.0",
        "lifespan": lifespan,
    }

    # 本番環境ではドキュメントを無効化
    if settings.is_production:
        app_params["docs_url"] = None
        app_params["redoc_url"] = None
        app_params["openapi_url"] = None

    # アプリ生成
    app = FastAPI(**app_params)
    app.state.services = build_services(settings, redis=redis_client, clock=clock)

    # ヘルスチェックログフィルター
    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

    # CORS
    if len(settings.BACKEND_CORS_ORIGINS) > 0:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[settings.CSRF_HEADER_NAME, "Retry-After"],
        )

    # 例外ハンドラー登録
    register_exception_handlers(app)

    # ミドルウェア登録（後に登録したものが外側）
    # error_response -> session_security -> csrf -> ルーター
    app.middleware("http")(csrf_middleware)
    app.middleware("http")(session_security_middleware)
    app.middleware("http")(error_response_middleware)

    # ルーター登録
    app.include_router(api_router, prefix="/api")

    return app
