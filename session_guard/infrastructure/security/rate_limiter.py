"""
段階的レート制限

Redisのソート済みセットによるスライディングウィンドウ。
上限を超えるたびに違反回数を数え、ロックアウト時間を指数的に延ばす。
状態はRedisに置くため複数インスタンス間で共有される。
"""

import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from redis.asyncio import Redis

from ...domain.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

MAX_BACKOFF_EXPONENT = 5


@dataclass(frozen=True)
class RateLimitStatus:
    """ウィンドウ内のリクエスト数"""

    count: int
    limit: int
    remaining: int


class RateLimiter:
    """スライディングウィンドウ方式のレート制限"""

    def __init__(
        self,
        redis: Redis,
        max_attempts: int,
        window: int,
        clock: Callable[[], float],
    ):
        self.redis = redis
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock

    @staticmethod
    def _window_key(identifier: str) -> str:
        return f"rate_limit:{identifier}"

    @staticmethod
    def _violations_key(identifier: str) -> str:
        return f"rate_limit_violations:{identifier}"

    @staticmethod
    def _lockout_key(identifier: str) -> str:
        return f"rate_limit_lockout:{identifier}"

    def lockout_duration(self, violations: int) -> float:
        """
        違反回数に応じたロックアウト秒数

        window * 2 ** min(violations / max_attempts, 5)。最大でウィンドウの32倍
        """
        exponent = min(violations / self.max_attempts, MAX_BACKOFF_EXPONENT)
        return self.window * (2**exponent)

    async def hit(self, identifier: str) -> RateLimitStatus:
        """
        リクエストを1件記録して制限を判定

        Args:
            identifier: "{ip}:{user}" 形式の識別子

        Returns:
            記録後のウィンドウ状況

        Raises:
            RateLimitExceededError: 上限超過またはロックアウト中
        """
        now = self._clock()

        locked_until = await self.redis.get(self._lockout_key(identifier))
        if locked_until is not None and float(locked_until) > now:
            raise RateLimitExceededError(
                retry_after=math.ceil(float(locked_until) - now)
            )

        window_key = self._window_key(identifier)
        await self.redis.zremrangebyscore(window_key, "-inf", now - self.window)
        count = await self.redis.zcard(window_key)

        if count >= self.max_attempts:
            violations = await self.redis.incr(self._violations_key(identifier))
            await self.redis.expire(
                self._violations_key(identifier),
                self.window * (2**MAX_BACKOFF_EXPONENT),
            )
            lockout = self.lockout_duration(violations)
            await self.redis.set(
                self._lockout_key(identifier),
                now + lockout,
                ex=math.ceil(lockout),
            )
            logger.warning(
                f"Rate limit exceeded for {identifier} "
                f"(violations={violations}, lockout={lockout:.0f}s)"
            )
            raise RateLimitExceededError(
                retry_after=math.ceil(lockout),
                details={"violations": violations},
            )

        await self.redis.zadd(window_key, {f"{now}:{uuid.uuid4().hex}": now})
        await self.redis.expire(window_key, self.window)
        return RateLimitStatus(
            count=count + 1,
            limit=self.max_attempts,
            remaining=self.max_attempts - count - 1,
        )

    async def reset(self, identifier: str) -> None:
        """識別子の制限状態をすべて削除"""
        await self.redis.delete(
            self._window_key(identifier),
            self._violations_key(identifier),
            self._lockout_key(identifier),
        )
