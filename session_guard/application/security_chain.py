"""
セッションセキュリティチェーン

リクエストごとに固定の順序で各ステージを実行する。

1. セッション固定攻撃対策（ログインPOST時のID再生成）
2. デバイスフィンガープリント検証
3. 位置情報の監視（本番環境のみ）
4. セッションハイジャック検出（User-Agent/IPの固定）
5. タイムアウト（アイドル・絶対）
6. 同時セッション数の制限
7. レート制限

2〜6はCookieからセッションを読み込めた場合のみ実行する。
途中のステージが失敗した場合は監査ログを1件残してドメイン例外を送出する。
"""

from dataclasses import dataclass, field
from typing import Optional

from redis.exceptions import RedisError

from ..core.logging import get_logger
from ..domain.exceptions import (
    DeviceMismatchError,
    InvalidSessionTokenError,
    RateLimitExceededError,
    SessionExpiredError,
    SessionHijackError,
)
from ..domain.models import SecurityEventType, SessionRecord, Severity
from ..infrastructure.audit.audit_log import AuditLogger
from ..infrastructure.security.fingerprint import (
    DeviceSignals,
    fingerprint_similarity,
    generate_fingerprint,
)
from ..infrastructure.security.location import LocationMonitor
from ..infrastructure.security.rate_limiter import RateLimiter, RateLimitStatus
from .security_events import SecurityEventService
from .session_manager import SessionManager

logger = get_logger(__name__)

ANONYMOUS = "anonymous"


@dataclass
class RequestContext:
    """チェーンが参照するリクエスト属性"""

    method: str
    path: str
    ip: str
    user_agent: str
    signals: DeviceSignals = field(default_factory=DeviceSignals)
    session_id: Optional[str] = None
    country: Optional[str] = None


@dataclass
class ChainOutcome:
    """
    チェーンの実行結果

    Attributes:
        session: 検証済みのセッション（未認証ならNone）
        is_login: ログインリクエストかどうか
        regenerated_session_id: 固定攻撃対策で再生成したセッションID
        previous_last_accessed: 今回のアクセス前の最終アクセス時刻
        rate_limit: レート制限の状況
    """

    session: Optional[SessionRecord] = None
    is_login: bool = False
    regenerated_session_id: Optional[str] = None
    previous_last_accessed: Optional[float] = None
    rate_limit: Optional[RateLimitStatus] = None


class SessionSecurityChain:
    """セッションセキュリティの各ステージを順に実行する"""

    def __init__(
        self,
        manager: SessionManager,
        events: SecurityEventService,
        rate_limiter: RateLimiter,
        location_monitor: LocationMonitor,
        audit: AuditLogger,
        *,
        secret: str,
        login_paths: list[str],
        similarity_threshold: float,
        monitor_location: bool,
    ):
        self.manager = manager
        self.events = events
        self.rate_limiter = rate_limiter
        self.location_monitor = location_monitor
        self.audit = audit
        self.secret = secret
        self.login_paths = frozenset(login_paths)
        self.similarity_threshold = similarity_threshold
        self.monitor_location = monitor_location

    def is_login_request(self, ctx: RequestContext) -> bool:
        return ctx.method.upper() == "POST" and ctx.path in self.login_paths

    async def run(self, ctx: RequestContext) -> ChainOutcome:
        """
        全ステージを実行

        Raises:
            InvalidSessionTokenError: トークンが無効（401）
            DeviceMismatchError: 未信頼端末のフィンガープリント不一致（401）
            SessionHijackError: User-Agent/IPの変化（401）
            SessionExpiredError: タイムアウト（440）
            RateLimitExceededError: レート制限（429）
            RedisError: ストアの障害
        """
        outcome = ChainOutcome(is_login=self.is_login_request(ctx))

        if outcome.is_login:
            if ctx.session_id:
                outcome.regenerated_session_id = await self.prevent_fixation(
                    ctx.session_id, ctx
                )
        elif ctx.session_id:
            record = await self.load_session(ctx.session_id, ctx)
            if record is not None:
                await self.check_fingerprint(record, ctx)
                if self.monitor_location:
                    await self.monitor_location_change(record, ctx)
                await self.check_hijacking(record, ctx)
                outcome.previous_last_accessed = record.last_accessed
                await self.check_timeout(record, ctx)
                await self.limit_concurrent_sessions(record, ctx)
                outcome.session = record

        outcome.rate_limit = await self.apply_rate_limit(ctx, outcome.session)

        if outcome.session is not None:
            await self.manager.save(outcome.session)
        return outcome

    async def load_session(
        self, session_id: str, ctx: RequestContext
    ) -> Optional[SessionRecord]:
        """
        Cookieのセッションを読み込む

        存在しない・無効化済みのセッションは未認証として扱う
        """
        record = await self.manager.store.get(session_id)
        if record is None or not record.is_active:
            return None

        if not self.manager.token_matches(record):
            await self.manager.invalidate_session(record, "invalid_token", audit=False)
            await self.audit.log_audit_event(
                "Invalid session token",
                record.user_id,
                record.session_id,
                ctx.ip,
                ctx.user_agent,
            )
            raise InvalidSessionTokenError()
        return record

    async def prevent_fixation(
        self, session_id: str, ctx: RequestContext
    ) -> Optional[str]:
        """
        ログイン前のセッションIDを新しいIDに差し替える

        失敗してもリクエストは続行する

        Returns:
            新しいセッションID、再生成できなかった場合はNone
        """
        try:
            new_session_id = await self.manager.regenerate_session_id(session_id)
        except (RedisError, ValueError) as e:
            logger.error(f"Session regeneration failed for {session_id}: {e}")
            await self.audit.log_audit_event(
                "Session regeneration failed",
                None,
                session_id,
                ctx.ip,
                ctx.user_agent,
                {"error": str(e)},
            )
            return None

        if new_session_id:
            await self.audit.log_audit_event(
                "Session regenerated",
                None,
                new_session_id,
                ctx.ip,
                ctx.user_agent,
                {"previousSessionId": session_id},
            )
        return new_session_id

    async def check_fingerprint(self, record: SessionRecord, ctx: RequestContext) -> None:
        """
        デバイスフィンガープリントを検証

        初回はベースラインとして記録する。User-AgentまたはIP自体が変わっている場合は
        ハイジャック検出に判定を任せる
        """
        current = generate_fingerprint(self.secret, ctx.signals)
        if record.device_fingerprint is None:
            record.device_fingerprint = current
            record.trusted_device = False
            return

        if record.user_agent != ctx.user_agent or record.ip_address != ctx.ip:
            return

        similarity = fingerprint_similarity(record.device_fingerprint, current)
        if similarity >= self.similarity_threshold:
            return

        if record.trusted_device:
            logger.warning(
                f"Fingerprint drift on trusted device for session {record.session_id} "
                f"(similarity={similarity:.2f})"
            )
            return

        await self.manager.invalidate_session(record, "device_mismatch", audit=False)
        await self.events.report_security_event(
            record.principal,
            SecurityEventType.DEVICE_MISMATCH.value,
            Severity.WARNING,
            {"similarity": round(similarity, 3)},
            session_id=record.session_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            audit_event="Device fingerprint mismatch",
        )
        raise DeviceMismatchError()

    async def monitor_location_change(
        self, record: SessionRecord, ctx: RequestContext
    ) -> None:
        """位置情報を記録し、短時間での国の変化を警告として残す（遮断はしない）"""
        try:
            previous = await self.location_monitor.record(
                record.principal, ctx.country, ctx.ip
            )
            if previous is None:
                return
            await self.events.report_security_event(
                record.principal,
                SecurityEventType.LOCATION_CHANGE.value,
                Severity.WARNING,
                {
                    "previousCountry": previous.country,
                    "currentCountry": ctx.country or "unknown",
                    "previousIp": previous.ip,
                },
                session_id=record.session_id,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
            )
        except RedisError as e:
            logger.warning(f"Location monitoring failed for {record.principal}: {e}")

    async def check_hijacking(self, record: SessionRecord, ctx: RequestContext) -> None:
        """セッション作成時のUser-Agent/IPと異なるリクエストを拒否"""
        ua_changed = record.user_agent != ctx.user_agent
        ip_changed = record.ip_address != ctx.ip
        if not ua_changed and not ip_changed:
            return

        await self.manager.invalidate_session(record, "hijack", audit=False)
        await self.events.report_security_event(
            record.principal,
            SecurityEventType.SESSION_HIJACK_ATTEMPT.value,
            Severity.CRITICAL,
            {
                "userAgentChanged": ua_changed,
                "ipChanged": ip_changed,
                "originalIp": record.ip_address,
            },
            session_id=record.session_id,
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            audit_event="Hijacking detected",
        )
        raise SessionHijackError()

    async def check_timeout(self, record: SessionRecord, ctx: RequestContext) -> None:
        """アイドル・絶対タイムアウトを判定し、通過したら最終アクセス時刻を更新"""
        now = self.manager.now()
        idle = self.manager.is_idle_expired(record, now)
        if idle or self.manager.is_absolute_expired(record, now):
            await self.manager.invalidate_session(record, "expired", audit=False)
            await self.audit.log_audit_event(
                "Session expired",
                record.user_id,
                record.session_id,
                ctx.ip,
                ctx.user_agent,
                {"reason": "idle" if idle else "absolute"},
            )
            raise SessionExpiredError()

        record.last_accessed = now

    async def limit_concurrent_sessions(
        self, record: SessionRecord, ctx: RequestContext
    ) -> None:
        """上限を超えたセッションを古い順に破棄"""
        evicted = await self.manager.evict_excess_sessions(
            record, ip=ctx.ip, user_agent=ctx.user_agent
        )
        if evicted:
            await self.events.report_security_event(
                record.principal,
                SecurityEventType.SESSION_LIMIT_EXCEEDED.value,
                Severity.INFO,
                {"evictedSessionIds": evicted},
                session_id=record.session_id,
                ip=ctx.ip,
                user_agent=ctx.user_agent,
            )

    async def apply_rate_limit(
        self, ctx: RequestContext, record: Optional[SessionRecord]
    ) -> RateLimitStatus:
        """IPとユーザーの組ごとにリクエスト数を制限"""
        principal = record.principal if record is not None else ANONYMOUS
        identifier = f"{ctx.ip}:{principal}"
        try:
            return await self.rate_limiter.hit(identifier)
        except RateLimitExceededError as e:
            # 新たな違反のときだけセキュリティイベントとして残す
            if record is not None and e.details:
                await self.events.report_security_event(
                    principal,
                    SecurityEventType.RATE_LIMIT_EXCEEDED.value,
                    Severity.WARNING,
                    {"retryAfter": e.retry_after, **e.details},
                    session_id=record.session_id,
                    ip=ctx.ip,
                    user_agent=ctx.user_agent,
                    audit_event="Rate limit exceeded",
                )
            else:
                await self.audit.log_audit_event(
                    "Rate limit exceeded",
                    record.user_id if record is not None else None,
                    record.session_id if record is not None else ctx.session_id,
                    ctx.ip,
                    ctx.user_agent,
                    {"retryAfter": e.retry_after},
                )
            raise
