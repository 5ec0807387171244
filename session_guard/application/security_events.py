"""
セキュリティイベントとリスク評価

イベントはユーザーごとのRedisリストに新しい順で積み、件数とTTLで上限を設ける。
リスク評価は参考値で、評価結果を理由にリクエストを拒否することはない。
"""

from collections import Counter
from collections.abc import Callable
from typing import Any, Optional

from redis.asyncio import Redis

from ..core.logging import get_logger
from ..domain.models import RiskAssessment, RiskLevel, SecurityEvent, Severity
from ..infrastructure.audit.audit_log import AuditLogger
from ..infrastructure.repositories.session_repository import SessionStore

logger = get_logger(__name__)

CRITICAL_EVENT_WEIGHT = 50
WARNING_EVENT_WEIGHT = 10
WARNING_EVENT_ALLOWANCE = 2
EXCESS_SESSION_WEIGHT = 20
FAILED_LOGIN_WEIGHT = 15
FAILED_LOGIN_ALLOWANCE = 3


def risk_level_for(score: int) -> RiskLevel:
    """スコアからリスクレベルを決定"""
    if score >= 100:
        return RiskLevel.CRITICAL
    if score >= 50:
        return RiskLevel.HIGH
    if score >= 20:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class SecurityEventService:
    """セキュリティイベントの記録・集計とリスク評価"""

    def __init__(
        self,
        redis: Redis,
        store: SessionStore,
        audit: AuditLogger,
        event_limit: int,
        event_ttl: int,
        risk_window: int,
        failed_login_ttl: int,
        max_sessions_per_user: int,
        clock: Callable[[], float],
    ):
        self.redis = redis
        self.store = store
        self.audit = audit
        self.event_limit = event_limit
        self.event_ttl = event_ttl
        self.risk_window = risk_window
        self.failed_login_ttl = failed_login_ttl
        self.max_sessions_per_user = max_sessions_per_user
        self._clock = clock

    @staticmethod
    def _events_key(user_id: str) -> str:
        return f"security_events:{user_id}"

    @staticmethod
    def _failed_logins_key(user_id: str) -> str:
        return f"failed_logins:{user_id}"

    async def report_security_event(
        self,
        user_id: str,
        event_type: str,
        severity: Severity,
        metadata: Optional[dict[str, Any]] = None,
        *,
        session_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        audit_event: Optional[str] = None,
    ) -> SecurityEvent:
        """
        セキュリティイベントを記録して監査ログにも残す

        Args:
            user_id: ユーザーID（ウォレットのみのセッションではウォレットアドレス）
            event_type: イベント種別
            severity: 重大度
            metadata: 追加情報
            audit_event: 監査ログのイベント名（省略時は "Security event: {event_type}"）

        Returns:
            記録したイベント
        """
        event = SecurityEvent(
            user_id=user_id,
            event_type=event_type,
            severity=severity,
            timestamp=self._clock(),
            metadata=metadata or {},
        )
        key = self._events_key(user_id)
        await self.redis.lpush(key, event.model_dump_json(by_alias=True))
        await self.redis.ltrim(key, 0, self.event_limit - 1)
        await self.redis.expire(key, self.event_ttl)

        log = logger.warning if severity != Severity.INFO else logger.info
        log(f"Security event {event_type} ({severity.value}) for user {user_id}")

        await self.audit.log_audit_event(
            audit_event or f"Security event: {event_type}",
            user_id,
            session_id,
            ip,
            user_agent,
            {"severity": severity.value, **event.metadata},
        )
        return event

    async def get_events(self, user_id: str, limit: Optional[int] = None) -> list[SecurityEvent]:
        """
        記録されているイベントを新しい順で取得

        Args:
            limit: 取得件数（Noneなら全件）
        """
        end = -1 if limit is None else limit - 1
        raw = await self.redis.lrange(self._events_key(user_id), 0, end)
        events = []
        for item in raw:
            try:
                events.append(SecurityEvent.model_validate_json(item))
            except ValueError:
                logger.warning(f"Skipping malformed security event for user {user_id}")
        return events

    async def get_recent_events(self, user_id: str) -> list[SecurityEvent]:
        """リスク評価の対象期間内のイベント"""
        since = self._clock() - self.risk_window
        return [e for e in await self.get_events(user_id) if e.timestamp >= since]

    async def record_failed_login(self, user_id: str) -> int:
        """
        ログイン失敗を1件数える

        Returns:
            TTL内の失敗回数
        """
        key = self._failed_logins_key(user_id)
        count = await self.redis.incr(key)
        await self.redis.expire(key, self.failed_login_ttl)
        return count

    async def clear_failed_logins(self, user_id: str) -> None:
        await self.redis.delete(self._failed_logins_key(user_id))

    async def calculate_session_risk(
        self, user_id: str, session_id: Optional[str] = None
    ) -> RiskAssessment:
        """
        直近のイベント・同時セッション数・ログイン失敗回数からリスクを評価

        Args:
            user_id: ユーザーID
            session_id: 評価対象のセッション（現状はスコアに影響しない）

        Returns:
            リスク評価
        """
        score = 0
        factors: list[str] = []

        events = await self.get_recent_events(user_id)
        critical = sum(1 for e in events if e.severity == Severity.CRITICAL)
        warnings = sum(1 for e in events if e.severity == Severity.WARNING)

        if critical > 0:
            score += critical * CRITICAL_EVENT_WEIGHT
            factors.append(f"{critical} critical security events")
        if warnings > WARNING_EVENT_ALLOWANCE:
            score += warnings * WARNING_EVENT_WEIGHT
            factors.append(f"{warnings} warning security events")

        active_sessions = len(await self.store.get_user_session_ids(user_id))
        if active_sessions > self.max_sessions_per_user:
            excess = active_sessions - self.max_sessions_per_user
            score += excess * EXCESS_SESSION_WEIGHT
            factors.append(f"{active_sessions} concurrent sessions")

        failed_logins = int(await self.redis.get(self._failed_logins_key(user_id)) or 0)
        if failed_logins > FAILED_LOGIN_ALLOWANCE:
            score += failed_logins * FAILED_LOGIN_WEIGHT
            factors.append(f"{failed_logins} failed login attempts")

        return RiskAssessment(
            risk_score=score,
            risk_level=risk_level_for(score),
            risk_factors=factors,
        )

    async def get_security_metrics(self, user_id: str) -> dict[str, Any]:
        """
        重大度別・種別ごとのイベント件数

        Returns:
            totalEvents / bySeverity / byType / recentEvents
        """
        events = await self.get_events(user_id)
        recent = await self.get_recent_events(user_id)
        return {
            "totalEvents": len(events),
            "bySeverity": {
                severity.value: sum(1 for e in events if e.severity == severity)
                for severity in Severity
            },
            "byType": dict(Counter(e.event_type for e in events)),
            "recentEvents": len(recent),
        }
