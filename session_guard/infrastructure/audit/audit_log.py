"""
セッション監査ログ

1イベント1行のJSONを追記専用ファイルに書き込む。
書き込みの失敗はログに残すだけでリクエスト処理には影響させない。
"""

import json
import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional

import anyio

logger = logging.getLogger(__name__)


class AuditLogger:
    """監査ログの追記"""

    def __init__(self, path: str, clock: Callable[[], float]):
        self.path = anyio.Path(path)
        self._clock = clock

    async def log_audit_event(
        self,
        event: str,
        user_id: Optional[str],
        session_id: Optional[str],
        ip: Optional[str],
        user_agent: Optional[str],
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        監査イベントを1行追記

        Args:
            event: イベント名
            user_id: ユーザーID
            session_id: セッションID
            ip: IPアドレス
            user_agent: User-Agent
            details: 追加情報
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            "event": event,
            "userId": user_id,
            "sessionId": session_id,
            "ip": ip,
            "userAgent": user_agent,
        }
        if details:
            entry["details"] = details

        try:
            line = json.dumps(entry, ensure_ascii=False, default=str)
            await self.path.parent.mkdir(parents=True, exist_ok=True)
            async with await anyio.open_file(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write audit log entry '{event}': {e}")

    async def read_recent(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        直近の監査エントリを新しい順で取得

        ファイルは1行ずつ読み、保持するのは直近limit件のみ。

        Returns:
            エントリのリスト（ファイルがなければ空）
        """
        if not await self.path.exists():
            return []

        recent: deque[dict[str, Any]] = deque(maxlen=limit)
        async with await anyio.open_file(self.path, encoding="utf-8") as f:
            async for line in f:
                if not line.strip():
                    continue
                try:
                    recent.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed audit log line")
        return list(reversed(recent))
