"""セッション関連バッチタスクの基底クラス"""

import time
from abc import ABC, abstractmethod
from typing import Optional

import sentry_sdk

from ...core.logging import get_logger


class BatchTask(ABC):
    """
    非同期バッチタスクの基底クラス

    execute()を実装し、スケジューラーからはrun()を呼ぶ。
    直近の実行結果はlast_duration / last_errorに残る。

    Example:
        >>> class PruneTask(BatchTask):
        ...     async def execute(self) -> None:
        ...         await store.prune_user_index("user-1")
        ...
        >>> await PruneTask().run()
    """

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.last_duration: Optional[float] = None
        self.last_error: Optional[Exception] = None

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def execute(self) -> None:
        """タスク本体"""

    async def on_success(self) -> None:
        """成功時のフック"""

    async def on_failure(self, error: Exception) -> None:
        """
        失敗時のフック

        Args:
            error: 発生した例外
        """
        self.logger.error(f"[BATCH] {self.name} failed: {error}", exc_info=True)

    async def run(self) -> None:
        """
        execute()を実行する

        開始/終了のログ、実行時間の記録、Sentryへの送信、フックの呼び出しを行う

        Raises:
            Exception: execute()で発生した例外を再送出
        """
        started = time.perf_counter()
        self.last_error = None

        try:
            self.logger.info(f"[BATCH] {self.name} start")
            await self.execute()
            await self.on_success()
        except Exception as e:
            self.last_error = e
            await self.on_failure(e)
            sentry_sdk.capture_exception(e)
            raise
        finally:
            self.last_duration = time.perf_counter() - started

        self.logger.info(f"[BATCH] {self.name} completed ({self.last_duration:.3f}s)")
