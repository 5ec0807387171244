"""
ウォレットセッション管理

ログイン時のセッション作成からトークンのローテーション、無効化、
セッションIDの再生成までを扱う
"""

from collections.abc import Callable
from typing import Any, Optional, Union

from ..core.logging import get_logger
from ..domain.models import SessionRecord, SessionType, generate_session_id
from ..infrastructure.audit.audit_log import AuditLogger
from ..infrastructure.repositories.session_repository import SessionStore
from ..infrastructure.security.token import SessionTokenCodec

logger = get_logger(__name__)


class SessionManager:
    """
    ウォレット認証セッションの管理

    Attributes:
        session_timeout: アイドルタイムアウト（秒）
        absolute_timeout: 通常セッションの絶対タイムアウト（秒）
        wallet_session_timeout: ウォレットのみのセッションの絶対タイムアウト（秒）
        refresh_threshold: トークンをローテーションするまでのアイドル時間（秒）
        max_sessions_per_user: 同時セッション上限
    """

    def __init__(
        self,
        store: SessionStore,
        codec: SessionTokenCodec,
        audit: AuditLogger,
        session_timeout: int,
        absolute_timeout: int,
        wallet_session_timeout: int,
        refresh_threshold: int,
        max_sessions_per_user: int,
        clock: Callable[[], float],
    ):
        self.store = store
        self.codec = codec
        self.audit = audit
        self.session_timeout = session_timeout
        self.absolute_timeout = absolute_timeout
        self.wallet_session_timeout = wallet_session_timeout
        self.refresh_threshold = refresh_threshold
        self.max_sessions_per_user = max_sessions_per_user
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    async def create_wallet_session(
        self,
        wallet_address: str,
        user_id: Optional[str],
        user_agent: str,
        ip_address: str,
        wallet_type: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> SessionRecord:
        """
        ウォレット認証後のセッションを作成

        session_id を渡した場合（再生成済みのID）はそのIDで認証済みレコードを作り直す

        Args:
            wallet_address: 認証済みウォレットアドレス
            user_id: ユーザーID（未登録ユーザーはNone）
            user_agent: User-Agent
            ip_address: クライアントIP
            wallet_type: ウォレット種別
            session_id: 使用するセッションID

        Returns:
            作成したセッションレコード
        """
        if session_id:
            existing = await self.store.get(session_id)
            if existing is not None:
                await self.store.remove_user_session(existing.principal, session_id)
        else:
            session_id = generate_session_id()

        now = self.now()
        record = SessionRecord(
            session_id=session_id,
            user_id=user_id,
            wallet_address=wallet_address,
            token=self.codec.generate(user_id, wallet_address),
            session_type=SessionType.STANDARD if user_id else SessionType.WALLET_ONLY,
            wallet_type=wallet_type,
            user_agent=user_agent,
            ip_address=ip_address,
            last_accessed=now,
            created_at=now,
            authenticated_at=now,
        )
        await self.store.create(session_id, record, user_id=record.principal)

        logger.info(f"Wallet session created: {session_id} for {wallet_address}")
        await self.audit.log_audit_event(
            "Session created",
            user_id,
            session_id,
            ip_address,
            user_agent,
            {"walletAddress": wallet_address, "sessionType": record.session_type.value},
        )
        return record

    def token_matches(self, record: SessionRecord) -> bool:
        """トークンが復号でき、ウォレットアドレスがレコードと一致するか"""
        payload = self.codec.validate(record.token)
        return payload is not None and payload.wallet_address == record.wallet_address

    def is_idle_expired(self, record: SessionRecord, now: Optional[float] = None) -> bool:
        now = self.now() if now is None else now
        return now - record.last_accessed > self.session_timeout

    def absolute_limit(self, record: SessionRecord) -> int:
        return self.wallet_session_timeout if record.is_wallet_only else self.absolute_timeout

    def is_absolute_expired(
        self, record: SessionRecord, now: Optional[float] = None
    ) -> bool:
        now = self.now() if now is None else now
        return now - record.authenticated_at > self.absolute_limit(record)

    def expires_at(self, record: SessionRecord) -> float:
        """アイドル・絶対タイムアウトのうち早い方の期限"""
        return min(
            record.last_accessed + self.session_timeout,
            record.authenticated_at + self.absolute_limit(record),
        )

    def is_session_expired(self, record: SessionRecord, now: Optional[float] = None) -> bool:
        """アイドルタイムアウトまたは絶対タイムアウトを超えているか"""
        now = self.now() if now is None else now
        return self.is_idle_expired(record, now) or self.is_absolute_expired(record, now)

    def should_refresh(self, record: SessionRecord, last_seen: Optional[float] = None) -> bool:
        last_seen = record.last_accessed if last_seen is None else last_seen
        return self.now() - last_seen > self.refresh_threshold

    async def validate_wallet_session(
        self, session_id: str, token: str
    ) -> Optional[SessionRecord]:
        """
        セッションIDとトークンの組を検証

        Returns:
            有効なセッション（最終アクセス時刻を更新済み）、無効ならNone
        """
        record = await self.store.get(session_id)
        if record is None or not record.is_active:
            return None

        if token != record.token or not self.token_matches(record):
            return None

        if self.is_session_expired(record):
            await self.invalidate_session(record, reason="expired")
            return None

        record.last_accessed = self.now()
        await self.store.update(session_id, record)
        return record

    async def refresh_wallet_session(
        self, record: SessionRecord, last_seen: Optional[float] = None
    ) -> SessionRecord:
        """
        セッションを延長し、しばらく使われていなかった場合はトークンをローテーション

        Args:
            record: 対象セッション
            last_seen: 直前のアクセス時刻（Noneならrecord.last_accessed）

        Returns:
            更新後のセッション
        """
        now = self.now()
        if self.should_refresh(record, last_seen):
            record.token = self.codec.generate(record.user_id, record.wallet_address)
            record.refreshed_at = now
            logger.info(f"Wallet session refreshed: {record.session_id}")

        record.last_accessed = now
        await self.store.update(record.session_id, record)
        return record

    async def invalidate_session(
        self,
        record_or_id: Union[SessionRecord, str],
        reason: str = "logout",
        *,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        audit: bool = True,
    ) -> bool:
        """
        セッションを破棄して索引からも外す

        Args:
            record_or_id: セッションまたはセッションID
            reason: 破棄理由（監査ログに残る）
            audit: 監査ログに残すか（呼び出し側で別途記録する場合はFalse）

        Returns:
            レコードを削除した場合True
        """
        if isinstance(record_or_id, SessionRecord):
            record: Optional[SessionRecord] = record_or_id
            session_id = record_or_id.session_id
        else:
            session_id = record_or_id
            record = await self.store.get(session_id)

        deleted = await self.store.destroy(session_id)
        if record is not None:
            record.is_active = False
            await self.store.remove_user_session(record.principal, session_id)

        logger.info(f"Session invalidated: {session_id} ({reason})")
        if audit:
            await self.audit.log_audit_event(
                "Session invalidated",
                record.user_id if record else None,
                session_id,
                ip,
                user_agent,
                {"reason": reason},
            )
        return deleted

    async def invalidate_all_sessions(
        self, principal: str, keep: Optional[str] = None
    ) -> int:
        """
        ユーザーの全セッションを破棄

        Args:
            principal: ユーザーIDまたはウォレットアドレス
            keep: 残すセッションID

        Returns:
            破棄した件数
        """
        count = 0
        for session_id in await self.store.get_user_session_ids(principal):
            if session_id == keep:
                continue
            await self.store.destroy(session_id)
            await self.store.remove_user_session(principal, session_id)
            count += 1

        logger.info(f"Invalidated {count} sessions for {principal}")
        return count

    async def get_active_sessions(self, principal: str) -> list[SessionRecord]:
        """作成順の有効なセッション"""
        sessions = await self.store.get_user_sessions(principal)
        return [s for s in sessions if s.is_active]

    async def regenerate_session_id(self, old_session_id: str) -> Optional[str]:
        """
        セッションIDを再生成（セッション固定攻撃対策）

        レコードを新しいIDに移し、古いIDを破棄する。索引上の位置は変えない

        Returns:
            新しいセッションID、古いセッションが存在しない場合はNone
        """
        record = await self.store.get(old_session_id)
        if record is None:
            logger.warning(f"Cannot regenerate non-existent session: {old_session_id}")
            return None

        new_session_id = generate_session_id()
        record.session_id = new_session_id
        await self.store.create(new_session_id, record)
        replaced = await self.store.replace_user_session(
            record.principal, old_session_id, new_session_id
        )
        if not replaced:
            await self.store.track_user_session(record.principal, new_session_id)
        await self.store.destroy(old_session_id)

        logger.info(f"Session ID regenerated: {old_session_id} -> {new_session_id}")
        return new_session_id

    async def evict_excess_sessions(
        self,
        record: SessionRecord,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> list[str]:
        """
        上限を超えている分を古い順に破棄（現在のセッションは残す）

        Returns:
            破棄したセッションID
        """
        principal = record.principal
        session_ids = await self.store.get_user_session_ids(principal)
        excess = len(session_ids) - self.max_sessions_per_user
        if excess <= 0:
            return []

        evicted = []
        for session_id in session_ids:
            if len(evicted) >= excess:
                break
            if session_id == record.session_id:
                continue
            await self.store.destroy(session_id)
            await self.store.remove_user_session(principal, session_id)
            evicted.append(session_id)
            logger.info(f"Evicted session {session_id} for {principal} (session limit)")
            await self.audit.log_audit_event(
                "Session evicted (limit)",
                record.user_id,
                session_id,
                ip,
                user_agent,
                {"keptSessionId": record.session_id, "limit": self.max_sessions_per_user},
            )
        return evicted

    async def save(self, record: SessionRecord) -> SessionRecord:
        return await self.store.update(record.session_id, record)

    async def session_stats(self) -> dict[str, Any]:
        """ストアの統計とタイムアウト設定"""
        stats = await self.store.stats()
        return {
            **stats,
            "sessionTimeout": self.session_timeout,
            "walletSessionTimeout": self.wallet_session_timeout,
            "walletRefreshThreshold": self.refresh_threshold,
            "maxSessionsPerUser": self.max_sessions_per_user,
        }
