"""Redis接続"""

import logging

from redis.asyncio import Redis

from ..core.config import Settings

logger = logging.getLogger(__name__)


def create_redis_client(settings: Settings) -> Redis:
    """
    設定からasyncio版Redisクライアントを作成

    接続は最初のコマンド実行時に確立される
    """
    logger.info(f"Using Redis at {settings.redis_url.rsplit('@', 1)[-1]}")
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=5.0,
        health_check_interval=30,
    )
