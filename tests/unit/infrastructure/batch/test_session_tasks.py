"""
セッション関連バッチタスクの単体テスト
"""

from session_guard.application.services import SessionServices
from session_guard.infrastructure.batch.registry import TaskRegistry
from session_guard.infrastructure.batch.tasks import (
    SessionHealthCheckTask,
    SessionSweepTask,
    register_session_tasks,
)
from tests.helpers import FakeClock


class TestRegisterSessionTasks:
    """register_session_tasks()のテスト"""

    def test_registers_scheduled_tasks(self, services: SessionServices) -> None:
        """スケジュールが設定されたタスクだけ登録すること"""
        services.settings = services.settings.model_copy(
            update={
                "SESSION_HEALTH_CHECK_SCHEDULE": "*/5 * * * *",
                "SESSION_SWEEP_SCHEDULE": None,
            }
        )
        registry = TaskRegistry()

        register_session_tasks(registry, services)

        assert set(registry.get_all()) == {"session_health_check"}

    def test_registers_nothing_without_schedules(
        self, services: SessionServices
    ) -> None:
        registry = TaskRegistry()

        register_session_tasks(registry, services)

        assert registry.get_all() == {}


class TestSessionHealthCheckTask:
    async def test_stores_result(self, services: SessionServices) -> None:
        """ヘルスチェック結果が保持されること"""
        await SessionHealthCheckTask(services).run()

        assert services.health.last_result is not None
        assert services.health.is_healthy() is True


class TestSessionSweepTask:
    """SessionSweepTaskのテスト"""

    async def test_invalidates_expired_sessions(
        self, services: SessionServices, clock: FakeClock
    ) -> None:
        """タイムアウトしたセッションを破棄すること"""
        manager = services.manager
        stale = await manager.create_wallet_session("0xabc", "user-1", "UA", "203.0.113.10")
        clock.advance(services.settings.SESSION_TIMEOUT + 1)
        fresh = await manager.create_wallet_session("0xdef", "user-2", "UA", "203.0.113.10")

        task = SessionSweepTask(services)
        await task.run()

        assert task.expired == 1
        assert await services.store.get(stale.session_id) is None
        assert await services.store.get(fresh.session_id) is not None
        assert await services.store.get_user_session_ids("user-1") == []

    async def test_prunes_stale_index_entries(self, services: SessionServices) -> None:
        """レコードが消えたIDを索引から取り除くこと"""
        record = await services.manager.create_wallet_session(
            "0xabc", "user-1", "UA", "203.0.113.10"
        )
        await services.store.destroy(record.session_id)

        task = SessionSweepTask(services)
        await task.run()

        assert task.pruned == 1
        assert await services.store.get_user_session_ids("user-1") == []
