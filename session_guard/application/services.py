"""
サービスコンテナ

アプリケーションごとにセッション関連のサービスを組み立てて1つにまとめる。
app.state.services に置き、依存関係から取り出して使う。
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis

from ..core.config import Settings
from ..core.logging import get_logger
from ..infrastructure.audit.audit_log import AuditLogger
from ..infrastructure.redis_client import create_redis_client
from ..infrastructure.repositories.session_repository import SessionStore
from ..infrastructure.security.csrf import CsrfGuard
from ..infrastructure.security.encryption import SessionEncryption
from ..infrastructure.security.location import LocationMonitor
from ..infrastructure.security.rate_limiter import RateLimiter
from ..infrastructure.security.token import SessionTokenCodec
from .health import SessionHealthCheck
from .security_chain import SessionSecurityChain
from .security_events import SecurityEventService
from .session_manager import SessionManager

logger = get_logger(__name__)


@dataclass
class SessionServices:
    """セッションセキュリティのサービス一式"""

    settings: Settings
    redis: Redis
    clock: Callable[[], float]
    audit: AuditLogger
    codec: SessionTokenCodec
    store: SessionStore
    manager: SessionManager
    events: SecurityEventService
    csrf: CsrfGuard
    rate_limiter: RateLimiter
    location_monitor: LocationMonitor
    chain: SessionSecurityChain
    health: SessionHealthCheck


def build_services(
    settings: Settings,
    redis: Optional[Redis] = None,
    clock: Optional[Callable[[], float]] = None,
) -> SessionServices:
    """
    設定からサービス一式を組み立てる

    Args:
        settings: アプリケーション設定
        redis: Redisクライアント（Noneなら設定から作成）
        clock: 現在時刻（epoch秒）を返す関数（Noneならtime.time）

    Returns:
        SessionServices
    """
    if settings.uses_default_secret:
        logger.warning(
            "SESSION_SECRET is not set. Using the insecure default secret; "
            "set SESSION_SECRET in production."
        )

    redis = redis if redis is not None else create_redis_client(settings)
    clock = clock or time.time

    audit = AuditLogger(settings.SESSION_AUDIT_LOG_PATH, clock)
    codec = SessionTokenCodec(settings.SESSION_SECRET, clock)
    encryption = SessionEncryption(
        settings.SESSION_ENCRYPTION_KEY, fallback_secret=settings.SESSION_SECRET
    )
    store = SessionStore(
        redis,
        encryption,
        record_ttl=settings.session_record_ttl,
        max_sessions_per_user=settings.MAX_SESSIONS_PER_USER,
        clock=clock,
    )
    manager = SessionManager(
        store,
        codec,
        audit,
        session_timeout=settings.SESSION_TIMEOUT,
        absolute_timeout=settings.SESSION_ABSOLUTE_TIMEOUT,
        wallet_session_timeout=settings.WALLET_SESSION_TIMEOUT,
        refresh_threshold=settings.WALLET_REFRESH_THRESHOLD,
        max_sessions_per_user=settings.MAX_SESSIONS_PER_USER,
        clock=clock,
    )
    events = SecurityEventService(
        redis,
        store,
        audit,
        event_limit=settings.SECURITY_EVENT_LIMIT,
        event_ttl=settings.SECURITY_EVENT_TTL,
        risk_window=settings.RISK_EVENT_WINDOW,
        failed_login_ttl=settings.FAILED_LOGIN_TTL,
        max_sessions_per_user=settings.MAX_SESSIONS_PER_USER,
        clock=clock,
    )
    csrf = CsrfGuard(
        token_length=settings.CSRF_TOKEN_LENGTH,
        token_expiry=settings.CSRF_TOKEN_EXPIRY,
        exempt_prefixes=settings.csrf_exempt_prefixes,
        clock=clock,
    )
    rate_limiter = RateLimiter(
        redis,
        max_attempts=settings.RATE_LIMIT_MAX_ATTEMPTS,
        window=settings.RATE_LIMIT_WINDOW,
        clock=clock,
    )
    location_monitor = LocationMonitor(
        redis,
        history_limit=settings.LOCATION_HISTORY_LIMIT,
        change_window=settings.LOCATION_CHANGE_WINDOW,
        clock=clock,
    )
    chain = SessionSecurityChain(
        manager,
        events,
        rate_limiter,
        location_monitor,
        audit,
        secret=settings.SESSION_SECRET,
        login_paths=settings.login_paths,
        similarity_threshold=settings.FINGERPRINT_SIMILARITY_THRESHOLD,
        monitor_location=settings.is_production,
    )
    health = SessionHealthCheck(redis, store, audit, clock)

    return SessionServices(
        settings=settings,
        redis=redis,
        clock=clock,
        audit=audit,
        codec=codec,
        store=store,
        manager=manager,
        events=events,
        csrf=csrf,
        rate_limiter=rate_limiter,
        location_monitor=location_monitor,
        chain=chain,
        health=health,
    )
