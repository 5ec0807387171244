"""テスト用ヘルパー"""

from typing import Any, Optional

from fastapi.testclient import TestClient

from session_guard.domain.models import SessionRecord, SessionType

WALLET_ADDRESS = "0xabc123def456"
USER_ID = "user-1"
USER_AGENT = "Mozilla/5.0 (TestBrowser)"
CLIENT_IP = "203.0.113.10"


class FakeClock:
    """
    テスト用の時計

    呼び出すと現在時刻（epoch秒）を返し、advance()で進める
    """

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_session(
    session_id: str = "session-1",
    token: str = "token",
    now: float = 1_700_000_000.0,
    **overrides: Any,
) -> SessionRecord:
    """ストアに直接保存するためのセッションレコード"""
    data: dict[str, Any] = {
        "session_id": session_id,
        "user_id": USER_ID,
        "wallet_address": WALLET_ADDRESS,
        "token": token,
        "session_type": SessionType.STANDARD,
        "user_agent": USER_AGENT,
        "ip_address": CLIENT_IP,
        "last_accessed": now,
        "created_at": now,
        "authenticated_at": now,
    }
    data.update(overrides)
    return SessionRecord(**data)


def login(
    client: TestClient,
    wallet_address: str = WALLET_ADDRESS,
    user_id: Optional[str] = USER_ID,
) -> Any:
    """
    ウォレットログインを行う

    成功するとクライアントのCookieにセッションIDとCSRFトークンが入る
    """
    body: dict[str, Any] = {"walletAddress": wallet_address}
    if user_id is not None:
        body["userId"] = user_id
    return client.post("/api/auth/login", json=body)


def csrf_headers(client: TestClient) -> dict[str, str]:
    """Cookieに入っているCSRFトークンをヘッダーとして送る"""
    return {"X-CSRF-Token": client.cookies.get("csrf-token", "")}


def use_session(client: TestClient, session_id: str) -> None:
    """Cookieを指定したセッションIDだけに差し替える"""
    client.cookies.clear()
    client.cookies.set("sid", session_id)
