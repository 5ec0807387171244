"""
セッションストア

Redisベースのセッション管理を提供
- 暗号化されたセッションレコードの保存/取得（スライディングTTL）
- ユーザー単位のセッション索引（作成順のリスト）
- 同時セッション数の上限（古い順に破棄）
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis

from ...domain.models import SessionRecord
from ..security.encryption import SessionEncryption

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"
USER_SESSIONS_PREFIX = "user_sessions:"


class SessionStore:
    """
    セッションストア

    Redis操作の失敗（RedisError）は呼び出し側に送出する
    """

    def __init__(
        self,
        redis: Redis,
        encryption: SessionEncryption,
        record_ttl: int,
        max_sessions_per_user: int,
        clock: Callable[[], float],
    ):
        """
        Args:
            redis: asyncio版Redisクライアント（decode_responses=True）
            encryption: レコード暗号化
            record_ttl: レコードと索引のTTL（秒）。タイムアウト判定より先に
                Redis側で消えないよう、アプリ側のどの期限よりも長くする
            max_sessions_per_user: ユーザーあたりの同時セッション上限
            clock: 現在時刻（epoch秒）を返す関数
        """
        self.redis = redis
        self.encryption = encryption
        self.record_ttl = record_ttl
        self.max_sessions_per_user = max_sessions_per_user
        self._clock = clock

    @staticmethod
    def session_key(session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    @staticmethod
    def user_sessions_key(user_id: str) -> str:
        return f"{USER_SESSIONS_PREFIX}{user_id}"

    async def create(
        self,
        session_id: str,
        data: SessionRecord,
        user_id: Optional[str] = None,
    ) -> SessionRecord:
        """
        新しいセッションを作成

        user_id が指定された場合は上限を適用してから索引に追加する

        Args:
            session_id: セッションID
            data: セッションレコード
            user_id: 索引に使う識別子（ユーザーIDまたはウォレットアドレス）

        Returns:
            保存したレコード
        """
        if user_id:
            await self.enforce_session_limit(user_id)
            await self.track_user_session(user_id, session_id)

        await self._write(session_id, data)
        logger.info(f"Session created: {session_id}")
        return data

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """
        セッションを取得

        復号できないレコードは削除してNoneを返す

        Returns:
            セッションレコード、存在しないまたは無効な場合はNone
        """
        raw = await self.redis.get(self.session_key(session_id))
        if raw is None:
            logger.debug(f"Session not found: {session_id}")
            return None

        try:
            return SessionRecord.model_validate(self.encryption.decrypt(raw))
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Failed to load session data for {session_id}: {e}")
            await self.destroy(session_id)
            return None

    async def update(self, session_id: str, data: SessionRecord) -> SessionRecord:
        """
        セッションを丸ごと置き換え、TTLを延長する

        Returns:
            保存したレコード
        """
        await self._write(session_id, data)
        logger.debug(f"Session updated: {session_id}")
        return data

    async def destroy(self, session_id: str) -> bool:
        """
        セッションレコードを削除

        索引からの削除は remove_user_session で行う

        Returns:
            削除した場合True
        """
        deleted = await self.redis.delete(self.session_key(session_id)) > 0
        if deleted:
            logger.info(f"Session deleted: {session_id}")
        return deleted

    async def exists(self, session_id: str) -> bool:
        return await self.redis.exists(self.session_key(session_id)) > 0

    async def track_user_session(self, user_id: str, session_id: str) -> None:
        """索引の末尾（最新）にセッションIDを追加"""
        key = self.user_sessions_key(user_id)
        await self.redis.rpush(key, session_id)
        await self.redis.expire(key, self.record_ttl)

    async def remove_user_session(self, user_id: str, session_id: str) -> None:
        """索引からセッションIDを削除"""
        await self.redis.lrem(self.user_sessions_key(user_id), 0, session_id)

    async def replace_user_session(
        self, user_id: str, old_session_id: str, new_session_id: str
    ) -> bool:
        """
        索引上のセッションIDを同じ位置のまま差し替える

        Returns:
            差し替えた場合True（古いIDが索引になければFalse）
        """
        key = self.user_sessions_key(user_id)
        session_ids = await self.redis.lrange(key, 0, -1)
        try:
            index = session_ids.index(old_session_id)
        except ValueError:
            return False

        await self.redis.lset(key, index, new_session_id)
        await self.redis.expire(key, self.record_ttl)
        return True

    async def get_user_session_ids(self, user_id: str) -> list[str]:
        """作成順（古い順）のセッションID"""
        return await self.redis.lrange(self.user_sessions_key(user_id), 0, -1)

    async def get_user_sessions(self, user_id: str) -> list[SessionRecord]:
        """
        ユーザーの全セッションを作成順で取得

        レコードが消えているIDは飛ばす
        """
        sessions = []
        for session_id in await self.get_user_session_ids(user_id):
            record = await self.get(session_id)
            if record is not None:
                sessions.append(record)
        return sessions

    async def prune_user_index(self, user_id: str) -> int:
        """
        レコードが消えたIDを索引から取り除く

        Returns:
            取り除いた件数
        """
        removed = 0
        for session_id in await self.get_user_session_ids(user_id):
            if not await self.exists(session_id):
                await self.remove_user_session(user_id, session_id)
                removed += 1
        if removed:
            logger.info(f"Pruned {removed} stale session ids for user {user_id}")
        return removed

    async def enforce_session_limit(self, user_id: str) -> list[str]:
        """
        新しいセッションを1件追加できるよう、上限に達していれば古い順に破棄

        Returns:
            破棄したセッションID
        """
        await self.prune_user_index(user_id)

        key = self.user_sessions_key(user_id)
        evicted = []
        while await self.redis.llen(key) >= self.max_sessions_per_user:
            oldest = await self.redis.lpop(key)
            if oldest is None:
                break
            await self.destroy(oldest)
            evicted.append(oldest)
            logger.info(f"Removed oldest session {oldest} for user {user_id} due to limit")
        return evicted

    async def iter_session_ids(self) -> list[str]:
        """保存されている全セッションID"""
        return [
            key[len(SESSION_PREFIX) :]
            async for key in self.redis.scan_iter(match=f"{SESSION_PREFIX}*")
        ]

    async def iter_user_index_ids(self) -> list[str]:
        """索引を持つ全ユーザー識別子"""
        return [
            key[len(USER_SESSIONS_PREFIX) :]
            async for key in self.redis.scan_iter(match=f"{USER_SESSIONS_PREFIX}*")
        ]

    async def stats(self) -> dict:
        """
        セッション統計

        Returns:
            totalSessions / activeUsers / timestamp
        """
        return {
            "totalSessions": len(await self.iter_session_ids()),
            "activeUsers": len(await self.iter_user_index_ids()),
            "timestamp": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
        }

    async def _write(self, session_id: str, data: SessionRecord) -> None:
        """レコードを書き込み、レコードと索引のTTLを延長する"""
        encrypted = self.encryption.encrypt(data.to_storage())
        await self.redis.set(self.session_key(session_id), encrypted, ex=self.record_ttl)
        # 索引はレコードと同じ期間残す
        await self.redis.expire(self.user_sessions_key(data.principal), self.record_ttl)
