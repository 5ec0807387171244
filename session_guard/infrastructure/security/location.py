"""
ログイン位置の監視

CDNが付与する国コードをユーザーごとの履歴に積み、
短時間での国の変化を検出する
"""

import logging
from collections.abc import Callable
from typing import Optional

from redis.asyncio import Redis

from ...domain.models import LocationEntry

logger = logging.getLogger(__name__)

LOCATION_HISTORY_TTL = 60 * 60 * 24 * 7  # 7 days
UNKNOWN_COUNTRY = "unknown"


class LocationMonitor:
    """位置情報履歴の記録と急な移動の検出"""

    def __init__(
        self,
        redis: Redis,
        history_limit: int,
        change_window: int,
        clock: Callable[[], float],
    ):
        self.redis = redis
        self.history_limit = history_limit
        self.change_window = change_window
        self._clock = clock

    @staticmethod
    def _key(user_id: str) -> str:
        return f"location_history:{user_id}"

    async def get_history(self, user_id: str) -> list[LocationEntry]:
        """新しい順の位置情報履歴"""
        raw = await self.redis.lrange(self._key(user_id), 0, -1)
        return [LocationEntry.model_validate_json(item) for item in raw]

    async def record(
        self, user_id: str, country: Optional[str], ip: str
    ) -> Optional[LocationEntry]:
        """
        現在位置を記録

        Args:
            user_id: ユーザーID
            country: 国コード（不明ならNone）
            ip: IPアドレス

        Returns:
            直前の位置から change_window 秒以内に国が変わった場合は直前のエントリ、
            それ以外はNone
        """
        now = self._clock()
        entry = LocationEntry(country=country or UNKNOWN_COUNTRY, ip=ip, timestamp=now)
        key = self._key(user_id)

        previous_raw = await self.redis.lindex(key, 0)

        await self.redis.lpush(key, entry.model_dump_json())
        await self.redis.ltrim(key, 0, self.history_limit - 1)
        await self.redis.expire(key, LOCATION_HISTORY_TTL)

        if previous_raw is None:
            return None

        previous = LocationEntry.model_validate_json(previous_raw)
        if (
            previous.country != entry.country
            and now - previous.timestamp < self.change_window
        ):
            logger.warning(
                f"Rapid location change for user {user_id}: "
                f"{previous.country} -> {entry.country}"
            )
            return previous
        return None
