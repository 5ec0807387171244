"""
CSRFガードの単体テスト
"""

import pytest

from session_guard.domain.exceptions import CsrfValidationError
from session_guard.infrastructure.security.csrf import CsrfGuard, generate_csrf_token
from tests.helpers import FakeClock, make_session


@pytest.fixture
def guard(clock: FakeClock) -> CsrfGuard:
    return CsrfGuard(
        token_length=32,
        token_expiry=3600,
        exempt_prefixes=["/auth/", "/api/auth/"],
        clock=clock,
    )


class TestGenerateCsrfToken:
    def test_hex_length(self) -> None:
        """バイト数の2倍の長さのHEX文字列になること"""
        assert len(generate_csrf_token(32)) == 64
        assert generate_csrf_token() != generate_csrf_token()


class TestRequiresValidation:
    """requires_validation()のテスト"""

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    def test_safe_methods(self, guard: CsrfGuard, method: str) -> None:
        """安全なメソッドは検証しないこと"""
        assert guard.requires_validation(method, "/api/sessions/refresh") is False

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    def test_unsafe_methods(self, guard: CsrfGuard, method: str) -> None:
        """状態変更メソッドは検証すること"""
        assert guard.requires_validation(method, "/api/sessions/refresh") is True

    def test_auth_paths_exempt(self, guard: CsrfGuard) -> None:
        """認証エンドポイントは検証しないこと"""
        assert guard.requires_validation("POST", "/api/auth/login") is False
        assert guard.requires_validation("POST", "/auth/logout") is False


class TestValidate:
    """validate()のテスト"""

    def test_valid_token(self, guard: CsrfGuard) -> None:
        """発行したトークンで検証が通ること"""
        session = make_session()
        token = guard.issue(session)

        guard.validate(session, token)

    def test_issue_sets_expiry(self, guard: CsrfGuard, clock: FakeClock) -> None:
        """発行時にセッションへトークンと期限を設定すること"""
        session = make_session()
        token = guard.issue(session)

        assert session.csrf_token == token
        assert session.csrf_token_expiry == clock.now + 3600

    def test_missing_token(self, guard: CsrfGuard) -> None:
        """トークンがない場合はCSRF_TOKEN_MISSINGになること"""
        session = make_session()
        guard.issue(session)

        with pytest.raises(CsrfValidationError) as exc_info:
            guard.validate(session, None)
        assert exc_info.value.code == "CSRF_TOKEN_MISSING"

    def test_invalid_token(self, guard: CsrfGuard) -> None:
        """一致しない場合はCSRF_TOKEN_INVALIDになること"""
        session = make_session()
        guard.issue(session)

        with pytest.raises(CsrfValidationError) as exc_info:
            guard.validate(session, "wrong-token")
        assert exc_info.value.code == "CSRF_TOKEN_INVALID"

    def test_session_without_token(self, guard: CsrfGuard) -> None:
        """未発行のセッションはCSRF_TOKEN_INVALIDになること"""
        with pytest.raises(CsrfValidationError) as exc_info:
            guard.validate(make_session(), "any-token")
        assert exc_info.value.code == "CSRF_TOKEN_INVALID"

    def test_expired_token(self, guard: CsrfGuard, clock: FakeClock) -> None:
        """期限切れの場合はCSRF_TOKEN_EXPIREDになること"""
        session = make_session()
        token = guard.issue(session)
        clock.advance(3601)

        with pytest.raises(CsrfValidationError) as exc_info:
            guard.validate(session, token)
        assert exc_info.value.code == "CSRF_TOKEN_EXPIRED"


class TestStats:
    def test_stats(self, guard: CsrfGuard, clock: FakeClock) -> None:
        """トークンの有無と期限切れを集計すること"""
        expired = make_session("s1")
        guard.issue(expired)
        clock.advance(3601)
        fresh = make_session("s2")
        guard.issue(fresh)

        stats = guard.stats([expired, fresh, make_session("s3")])

        assert stats == {"totalSessions": 3, "sessionsWithCSRF": 2, "expiredTokens": 1}
