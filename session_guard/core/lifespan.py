"""アプリケーションライフサイクル管理"""

import contextlib
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import FastAPI

from ..infrastructure.batch import (
    TaskRegistry,
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)
from ..infrastructure.batch.tasks import register_session_tasks
from .logging import get_logger

logger = get_logger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    アプリケーションのライフサイクル管理

    起動時:
    - 起動時刻の記録
    - セッション関連のバッチタスク登録
    - スケジューラー起動（テスト環境では起動しない）

    シャットダウン時:
    - スケジューラー停止
    - Redis接続のクローズ

    Args:
        app: FastAPIアプリケーションインスタンス

    Yields:
        None
    """
    # 起動時刻を記録（healthcheckのuptime計算用）
    app.state.start_time = datetime.now(timezone.utc)

    services = app.state.services
    settings = services.settings

    registry = TaskRegistry()
    register_session_tasks(registry, services)
    app.state.task_registry = registry

    scheduler = None
    if settings.is_test:
        logger.info("Scheduler disabled: test mode")
    else:
        scheduler = create_scheduler(registry)
        app.state.scheduler = scheduler
        start_scheduler(scheduler)

    yield

    # シャットダウン
    if scheduler is not None:
        stop_scheduler(scheduler)
    await services.redis.aclose()
    logger.info("Redis connection closed")
