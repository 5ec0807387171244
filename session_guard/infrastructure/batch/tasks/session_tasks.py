"""セッション関連の定期タスク"""

from typing import TYPE_CHECKING

from ..base import BatchTask
from ..registry import TaskRegistry

if TYPE_CHECKING:
    from ....application.services import SessionServices


class SessionHealthCheckTask(BatchTask):
    """
    セッション基盤のヘルスチェックタスク。

    結果はヘルスチェックサービスに保持され、監査ログにも残る。
    """

    def __init__(self, services: "SessionServices") -> None:
        super().__init__()
        self.services = services

    async def execute(self) -> None:
        result = await self.services.health.perform_health_check()
        self.logger.info(f"[BATCH] Session health: {result['status']}")


class SessionSweepTask(BatchTask):
    """
    セッション掃除タスク。

    タイムアウトは本来リクエスト時に判定されるが、
    アクセスのないセッションもここで破棄する。
    1. 索引からレコードの消えたIDを取り除く
    2. アイドル・絶対タイムアウトを超えたセッションを破棄する
    """

    def __init__(self, services: "SessionServices") -> None:
        super().__init__()
        self.services = services
        self.pruned = 0
        self.expired = 0

    async def execute(self) -> None:
        store = self.services.store
        manager = self.services.manager

        for principal in await store.iter_user_index_ids():
            self.pruned += await store.prune_user_index(principal)

        now = manager.now()
        for session_id in await store.iter_session_ids():
            record = await store.get(session_id)
            if record is None:
                continue
            if manager.is_session_expired(record, now):
                await manager.invalidate_session(record, "expired_sweep")
                self.expired += 1

        self.logger.info(
            f"[BATCH] Session sweep: pruned={self.pruned} expired={self.expired}"
        )


def register_session_tasks(registry: TaskRegistry, services: "SessionServices") -> None:
    """
    設定でスケジュールが指定されているタスクをレジストリに登録する。

    Args:
        registry: タスクレジストリ
        services: サービスコンテナ
    """
    settings = services.settings

    async def run_health_check() -> None:
        await SessionHealthCheckTask(services).run()

    async def run_sweep() -> None:
        await SessionSweepTask(services).run()

    if settings.SESSION_HEALTH_CHECK_SCHEDULE:
        registry.register(
            task_id="session_health_check",
            func=run_health_check,
            cron=settings.SESSION_HEALTH_CHECK_SCHEDULE,
            description="Session infrastructure health check",
        )

    if settings.SESSION_SWEEP_SCHEDULE:
        registry.register(
            task_id="session_sweep",
            func=run_sweep,
            cron=settings.SESSION_SWEEP_SCHEDULE,
            description="Expired session sweeper",
        )
