"""
pytest設定と共通フィクスチャ（fakeredisベース）
"""

from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Optional

import pytest
from fakeredis.aioredis import FakeRedis
from fastapi.testclient import TestClient

from session_guard.application.services import SessionServices, build_services
from session_guard.core.app_factory import create_app
from session_guard.core.config import Settings
from tests.helpers import CLIENT_IP, USER_AGENT, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """テスト用の時計"""
    return FakeClock()


@pytest.fixture
def audit_log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "session-audit.log"


@pytest.fixture
def settings(audit_log_path: Path) -> Settings:
    """
    テスト用設定

    スケジューラーは起動せず、監査ログは一時ディレクトリに書く
    """
    return Settings(
        ENV_MODE="test",
        SESSION_SECRET="test-session-secret",
        SESSION_ENCRYPTION_KEY="",
        SESSION_AUDIT_LOG_PATH=str(audit_log_path),
        SESSION_HEALTH_CHECK_SCHEDULE=None,
        SESSION_SWEEP_SCHEDULE=None,
        SENTRY_DSN=None,
    )


@pytest.fixture
async def redis() -> AsyncIterator[FakeRedis]:
    """テストごとに独立したインメモリRedis"""
    client = FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def services(settings: Settings, redis: FakeRedis, clock: FakeClock) -> SessionServices:
    """サービス一式（単体テスト用）"""
    return build_services(settings, redis=redis, clock=clock)


@pytest.fixture
def client_factory(
    settings: Settings, clock: FakeClock
) -> Iterator[Callable[..., TestClient]]:
    """
    設定を上書きしたテストクライアントを作るファクトリー

    Redisはクライアントごとに新しいfakeredisを使う。
    app_clockを渡すとFakeClockの代わりにその時計を使う。
    TestClientのイベントループ上でのみ使われるようにフィクスチャ側では触らない
    """
    with ExitStack() as stack:

        def factory(
            app_clock: Optional[Callable[[], float]] = None, **overrides: Any
        ) -> TestClient:
            app_settings = settings.model_copy(update=overrides)
            app = create_app(
                settings=app_settings,
                redis_client=FakeRedis(decode_responses=True),
                clock=app_clock or clock,
            )
            test_client = TestClient(
                app,
                headers={"User-Agent": USER_AGENT, "X-Forwarded-For": CLIENT_IP},
            )
            return stack.enter_context(test_client)

        yield factory


@pytest.fixture
def client(client_factory: Callable[..., TestClient]) -> TestClient:
    """
    テスト用FastAPIクライアント

    Returns:
        FastAPI TestClient
    """
    return client_factory()
