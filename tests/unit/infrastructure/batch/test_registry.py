"""
タスクレジストリの単体テスト
"""

import pytest
from apscheduler.triggers.cron import CronTrigger

from session_guard.infrastructure.batch.registry import TaskRegistry


async def noop() -> None:
    pass


async def other() -> None:
    pass


class TestRegisterTask:
    """register()メソッドのテスト"""

    def test_register_task_stores_info(self) -> None:
        """func・trigger・descriptionが保存されること"""
        registry = TaskRegistry()

        registry.register(
            task_id="test_task",
            func=noop,
            cron="*/5 * * * *",
            description="Test task",
        )

        info = registry.tasks["test_task"]
        assert info["func"] is noop
        assert isinstance(info["trigger"], CronTrigger)
        assert info["description"] == "Test task"

    def test_register_task_without_description(self) -> None:
        """descriptionなしで登録できること"""
        registry = TaskRegistry()

        registry.register(task_id="test_task", func=noop, cron="0 3 * * *")

        assert registry.tasks["test_task"]["description"] == ""

    def test_register_task_with_invalid_cron(self) -> None:
        """無効なcron形式でValueErrorが発生すること"""
        registry = TaskRegistry()

        with pytest.raises(ValueError):
            registry.register(task_id="test_task", func=noop, cron="invalid")

    def test_registries_are_independent(self) -> None:
        """レジストリはインスタンスごとに独立していること"""
        first = TaskRegistry()
        second = TaskRegistry()

        first.register(task_id="task1", func=noop, cron="0 3 * * *")

        assert second.get_all() == {}


class TestGetAllTasks:
    """get_all()メソッドのテスト"""

    def test_get_all_returns_empty_dict_initially(self) -> None:
        assert TaskRegistry().get_all() == {}

    def test_get_all_returns_all_tasks(self) -> None:
        """複数のタスクをすべて返すこと"""
        registry = TaskRegistry()
        registry.register(task_id="task1", func=noop, cron="0 3 * * *")
        registry.register(task_id="task2", func=other, cron="0 4 * * *")

        result = registry.get_all()

        assert set(result) == {"task1", "task2"}
