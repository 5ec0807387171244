"""
セッション基盤のヘルスチェック

Redisの読み書き・セッションストアの暗号化往復・直近の監査ログを確認する。
"""

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..core.logging import get_logger
from ..domain.models import SessionRecord
from ..infrastructure.audit.audit_log import AuditLogger
from ..infrastructure.repositories.session_repository import SessionStore

logger = get_logger(__name__)

HEALTH_CHECK_KEY = "health_check_test"
HEALTH_CHECK_SESSION_ID = "health_check_test_session"
SUSPICIOUS_AUDIT_KEYWORDS = ("hijacking", "expired", "limit")
SUSPICIOUS_EVENT_THRESHOLD = 5
HIGH_ACTIVE_USERS = 1000


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class SessionHealthCheck:
    """セッション基盤のヘルスチェック"""

    def __init__(
        self,
        redis: Redis,
        store: SessionStore,
        audit: AuditLogger,
        clock: Callable[[], float],
    ):
        self.redis = redis
        self.store = store
        self.audit = audit
        self._clock = clock
        self.last_result: Optional[dict[str, Any]] = None

    async def check_redis_connection(self) -> dict[str, Any]:
        """ping と書き込み・読み込み・削除"""
        started = time.perf_counter()
        try:
            await self.redis.ping()
            await self.redis.set(HEALTH_CHECK_KEY, "ok", ex=60)
            value = await self.redis.get(HEALTH_CHECK_KEY)
            await self.redis.delete(HEALTH_CHECK_KEY)
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"status": False, "message": f"Redis connection failed: {e}"}

        ok = value == "ok"
        return {
            "status": ok,
            "message": "Redis connection healthy" if ok else "Redis read/write mismatch",
            "duration": _elapsed_ms(started),
        }

    async def check_session_store(self) -> dict[str, Any]:
        """暗号化したテストレコードの書き込み・読み込み・削除"""
        started = time.perf_counter()
        now = self._clock()
        sample = SessionRecord(
            session_id=HEALTH_CHECK_SESSION_ID,
            wallet_address="health-check",
            last_accessed=now,
            created_at=now,
            authenticated_at=now,
        )
        try:
            await self.store.create(HEALTH_CHECK_SESSION_ID, sample)
            loaded = await self.store.get(HEALTH_CHECK_SESSION_ID)
            await self.store.destroy(HEALTH_CHECK_SESSION_ID)
        except (RedisError, ValueError) as e:
            logger.error(f"Session store health check failed: {e}")
            return {"status": False, "message": f"Session store failed: {e}"}

        ok = loaded is not None and loaded.wallet_address == sample.wallet_address
        return {
            "status": ok,
            "message": "Session store healthy" if ok else "Session store round trip failed",
            "duration": _elapsed_ms(started),
        }

    async def check_security_status(self, stats: dict[str, Any]) -> dict[str, Any]:
        """直近の監査ログに不審なイベントが多くないか"""
        recent = await self.audit.read_recent(10)
        suspicious = [
            entry
            for entry in recent
            if any(k in str(entry.get("event", "")).lower() for k in SUSPICIOUS_AUDIT_KEYWORDS)
        ]

        alerts = []
        status = True
        if len(suspicious) > SUSPICIOUS_EVENT_THRESHOLD:
            status = False
            alerts.append(f"High security events: {len(suspicious)} in last {len(recent)} events")
        if stats.get("activeUsers", 0) > HIGH_ACTIVE_USERS:
            alerts.append(f"High active users: {stats['activeUsers']}")

        return {
            "status": status,
            "message": "Security status normal" if status else "High number of security events detected",
            "details": {
                "auditEvents": len(recent),
                "suspiciousEvents": len(suspicious),
                "alerts": alerts,
            },
        }

    async def perform_health_check(self) -> dict[str, Any]:
        """
        全チェックを実行

        Returns:
            status（healthy / warning / unhealthy）とチェックごとの結果
        """
        started = time.perf_counter()
        checks: dict[str, Any] = {}
        alerts: list[str] = []
        metrics: dict[str, Any] = {}

        checks["redis"] = await self.check_redis_connection()
        checks["sessionStore"] = await self.check_session_store()

        try:
            metrics = await self.store.stats()
        except RedisError as e:
            logger.error(f"Failed to collect session stats: {e}")

        checks["security"] = await self.check_security_status(metrics)
        alerts.extend(checks["security"]["details"]["alerts"])

        failed = [name for name, check in checks.items() if not check["status"]]
        if failed:
            status = "unhealthy"
            alerts.append(f"Health check failed: {len(failed)} checks failed")
        elif alerts:
            status = "warning"
        else:
            status = "healthy"

        result = {
            "status": status,
            "timestamp": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
            "checks": checks,
            "metrics": metrics,
            "alerts": alerts,
            "duration": _elapsed_ms(started),
        }
        self.last_result = result

        await self.audit.log_audit_event(
            "session_health_check",
            None,
            None,
            None,
            None,
            {"status": status, "failedChecks": len(failed), "alerts": len(alerts)},
        )
        if status != "healthy":
            logger.warning(f"Session health check {status}: {alerts}")
        return result

    def is_healthy(self) -> bool:
        return self.last_result is not None and self.last_result["status"] != "unhealthy"
