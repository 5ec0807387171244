"""スケジュール実行するタスクの登録先"""

from collections.abc import Awaitable, Callable
from typing import TypedDict

from apscheduler.triggers.cron import CronTrigger


class TaskInfo(TypedDict):
    func: Callable[[], Awaitable[None]]
    trigger: CronTrigger
    description: str


class TaskRegistry:
    """
    cron式とコルーチン関数の組を保持する

    アプリケーションごとにlifespanで作成し、スケジューラーに渡す
    """

    def __init__(self) -> None:
        self.tasks: dict[str, TaskInfo] = {}

    def register(
        self,
        task_id: str,
        func: Callable[[], Awaitable[None]],
        cron: str,
        description: str = "",
    ) -> None:
        """
        Args:
            task_id: タスクID（同じIDで登録すると上書き）
            func: 実行するコルーチン関数
            cron: crontab形式 (例: "*/5 * * * *")
            description: ログ用の説明

        Raises:
            ValueError: cron式が不正
        """
        self.tasks[task_id] = TaskInfo(
            func=func,
            trigger=CronTrigger.from_crontab(cron),
            description=description,
        )

    def get_all(self) -> dict[str, TaskInfo]:
        return self.tasks
