"""
スケジューラー管理の単体テスト
"""

from datetime import datetime
from unittest.mock import Mock, patch

from apscheduler.triggers.cron import CronTrigger

from session_guard.infrastructure.batch.registry import TaskRegistry
from session_guard.infrastructure.batch.scheduler import (
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)


async def noop() -> None:
    pass


class TestCreateScheduler:
    """create_scheduler()のテスト"""

    @patch("session_guard.infrastructure.batch.scheduler.AsyncIOScheduler")
    @patch("session_guard.infrastructure.batch.scheduler.logger")
    def test_create_scheduler_registers_tasks(
        self, mock_logger: Mock, mock_scheduler_class: Mock
    ) -> None:
        """レジストリのタスクがジョブとして登録されること"""
        registry = TaskRegistry()
        registry.register(
            task_id="test_task", func=noop, cron="0 3 * * *", description="Test task"
        )
        mock_scheduler = Mock()
        mock_scheduler_class.return_value = mock_scheduler

        result = create_scheduler(registry)

        assert result == mock_scheduler
        mock_scheduler.add_job.assert_called_once()
        call_args = mock_scheduler.add_job.call_args
        assert call_args[0][0] is noop
        assert isinstance(call_args[1]["trigger"], CronTrigger)
        assert call_args[1]["id"] == "test_task"
        assert call_args[1]["name"] == "Test task"
        assert call_args[1]["max_instances"] == 1

        calls = [str(call) for call in mock_logger.info.call_args_list]
        assert any("Registered task: test_task" in call for call in calls)

    @patch("session_guard.infrastructure.batch.scheduler.AsyncIOScheduler")
    @patch("session_guard.infrastructure.batch.scheduler.logger")
    def test_create_scheduler_with_no_tasks(
        self, mock_logger: Mock, mock_scheduler_class: Mock
    ) -> None:
        """タスクが0個の場合でもスケジューラーを返すこと"""
        mock_scheduler = Mock()
        mock_scheduler_class.return_value = mock_scheduler

        result = create_scheduler(TaskRegistry())

        assert result == mock_scheduler
        mock_scheduler.add_job.assert_not_called()


class TestStartScheduler:
    """start_scheduler()のテスト"""

    @patch("session_guard.infrastructure.batch.scheduler.logger")
    def test_start_scheduler_logs_next_run_times(self, mock_logger: Mock) -> None:
        """起動し、各ジョブの次回実行時刻がログに出力されること"""
        mock_job = Mock()
        mock_job.id = "test_job"
        mock_job.next_run_time = datetime(2025, 1, 1, 3, 0, 0)
        mock_scheduler = Mock()
        mock_scheduler.get_jobs.return_value = [mock_job]

        start_scheduler(mock_scheduler)

        mock_scheduler.start.assert_called_once()
        calls = [str(call) for call in mock_logger.info.call_args_list]
        assert any("[SCHEDULER] Started" in call for call in calls)
        assert any("test_job next run:" in call for call in calls)


class TestStopScheduler:
    """stop_scheduler()のテスト"""

    @patch("session_guard.infrastructure.batch.scheduler.logger")
    def test_stop_running_scheduler(self, mock_logger: Mock) -> None:
        """起動中のスケジューラーを停止すること"""
        mock_scheduler = Mock()
        mock_scheduler.running = True

        stop_scheduler(mock_scheduler)

        mock_scheduler.shutdown.assert_called_once_with(wait=False)

    @patch("session_guard.infrastructure.batch.scheduler.logger")
    def test_stop_scheduler_not_running(self, mock_logger: Mock) -> None:
        """起動していない場合はshutdownを呼ばないこと"""
        mock_scheduler = Mock()
        mock_scheduler.running = False

        stop_scheduler(mock_scheduler)

        mock_scheduler.shutdown.assert_not_called()
