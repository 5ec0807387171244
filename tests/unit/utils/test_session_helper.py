"""
セッションヘルパーの単体テスト
"""

from typing import Optional

import pytest
from fastapi import Request, Response

from session_guard.core.config import Settings
from session_guard.utils.session_helper import (
    build_request_context,
    clear_session_cookie,
    get_client_ip,
    get_device_signals,
    set_csrf_token,
    set_session_cookie,
)


def make_request(
    headers: Optional[dict[str, str]] = None,
    client: Optional[tuple[str, int]] = ("10.0.0.1", 1234),
    method: str = "GET",
    path: str = "/api/profile",
) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in (headers or {}).items()
        ],
        "client": client,
    }
    return Request(scope)


class TestGetClientIp:
    """get_client_ipのテスト"""

    def test_cloudflare_header_first(self) -> None:
        """CF-Connecting-IPを最優先すること"""
        request = make_request(
            {"CF-Connecting-IP": "1.1.1.1", "X-Forwarded-For": "2.2.2.2"}
        )
        assert get_client_ip(request) == "1.1.1.1"

    def test_first_forwarded_address(self) -> None:
        """X-Forwarded-Forの先頭のIPを使うこと"""
        request = make_request({"X-Forwarded-For": "2.2.2.2, 3.3.3.3"})
        assert get_client_ip(request) == "2.2.2.2"

    def test_client_host_fallback(self) -> None:
        """ヘッダーがなければ接続元を使うこと"""
        assert get_client_ip(make_request()) == "10.0.0.1"

    def test_unknown_client(self) -> None:
        """接続元も不明なら空文字列を返すこと"""
        assert get_client_ip(make_request(client=None)) == ""


class TestRequestAttributes:
    def test_device_signals(self) -> None:
        """フィンガープリント用のヘッダーを集めること"""
        request = make_request(
            {
                "User-Agent": "UA",
                "Accept-Language": "ja",
                "Accept-Encoding": "gzip",
                "Accept": "text/html",
            }
        )

        signals = get_device_signals(request)

        assert signals.user_agent == "UA"
        assert signals.accept_language == "ja"
        assert signals.accept_encoding == "gzip"
        assert signals.accept == "text/html"
        assert signals.ip_address == "10.0.0.1"

    def test_request_context(self) -> None:
        """Cookieのセッションと国コードをコンテキストに入れること"""
        settings = Settings(_env_file=None)
        request = make_request(
            {"Cookie": "sid=abc", "CF-IPCountry": "JP", "User-Agent": "UA"},
            method="POST",
            path="/api/auth/login",
        )

        ctx = build_request_context(request, settings)

        assert ctx.method == "POST"
        assert ctx.path == "/api/auth/login"
        assert ctx.session_id == "abc"
        assert ctx.country == "JP"
        assert ctx.user_agent == "UA"

    def test_request_context_without_cookie(self) -> None:
        """Cookieがなければセッションなしとすること"""
        ctx = build_request_context(make_request(), Settings(_env_file=None))

        assert ctx.session_id is None
        assert ctx.country is None


class TestCookies:
    """Cookie設定のテスト"""

    @pytest.mark.parametrize("mode, secure", [("production", True), ("development", False)])
    def test_session_cookie(self, mode: str, secure: bool) -> None:
        """セッションCookieはHttpOnlyで、本番のみSecureになること"""
        settings = Settings(_env_file=None, ENV_MODE=mode)
        response = Response()

        set_session_cookie(response, settings, "abc")

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("sid=abc")
        assert "HttpOnly" in cookie
        assert ("Secure" in cookie) is secure

    def test_clear_session_cookie(self) -> None:
        """セッションCookieを削除すること"""
        response = Response()

        clear_session_cookie(response, Settings(_env_file=None))

        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_csrf_token(self) -> None:
        """CSRFトークンはスクリプトから読めるCookieとヘッダーに入ること"""
        settings = Settings(_env_file=None)
        response = Response()

        set_csrf_token(response, settings, "token")

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("csrf-token=token")
        assert "HttpOnly" not in cookie
        assert response.headers["X-CSRF-Token"] == "token"

    def test_csrf_token_none(self) -> None:
        """トークンがなければ何も設定しないこと"""
        response = Response()

        set_csrf_token(response, Settings(_env_file=None), None)

        assert "set-cookie" not in response.headers
