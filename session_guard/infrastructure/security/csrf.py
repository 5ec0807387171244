"""
CSRFトークン（ダブルサブミット方式）

トークンはセッションレコードに保存し、同じ値をCookieとレスポンスヘッダーで返す。
状態変更リクエストではヘッダーまたはボディのトークンをセッションの値と照合する。
"""

import logging
import secrets
from collections.abc import Callable
from typing import Optional

from ...domain.exceptions import CsrfValidationError
from ...domain.models import SessionRecord

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token(length: int = 32) -> str:
    """
    CSRFトークンを生成

    Args:
        length: バイト数

    Returns:
        ランダムなHEX文字列（length * 2文字）
    """
    return secrets.token_hex(length)


class CsrfGuard:
    """CSRFトークンの発行と検証"""

    def __init__(
        self,
        token_length: int,
        token_expiry: int,
        exempt_prefixes: list[str],
        clock: Callable[[], float],
    ):
        self.token_length = token_length
        self.token_expiry = token_expiry
        self.exempt_prefixes = tuple(exempt_prefixes)
        self._clock = clock

    def is_exempt(self, path: str) -> bool:
        """認証エンドポイントなどCSRF検証の対象外パスかどうか"""
        return path.startswith(self.exempt_prefixes)

    def requires_validation(self, method: str, path: str) -> bool:
        return method.upper() not in SAFE_METHODS and not self.is_exempt(path)

    def issue(self, session: SessionRecord) -> str:
        """
        新しいトークンをセッションに設定

        呼び出し側でセッションを保存すること

        Returns:
            発行したトークン
        """
        token = generate_csrf_token(self.token_length)
        session.csrf_token = token
        session.csrf_token_expiry = self._clock() + self.token_expiry
        return token

    def validate(self, session: SessionRecord, submitted: Optional[str]) -> None:
        """
        送信されたトークンを検証

        Raises:
            CsrfValidationError: 欠落・不一致・期限切れ
        """
        if not submitted:
            raise CsrfValidationError(
                message="CSRF token missing", code="CSRF_TOKEN_MISSING"
            )

        expected = session.csrf_token
        if not expected or not secrets.compare_digest(
            expected.encode("utf-8"), submitted.encode("utf-8")
        ):
            raise CsrfValidationError(
                message="Invalid CSRF token", code="CSRF_TOKEN_INVALID"
            )

        if session.csrf_token_expiry is not None and (
            self._clock() > session.csrf_token_expiry
        ):
            raise CsrfValidationError(
                message="CSRF token expired", code="CSRF_TOKEN_EXPIRED"
            )

    def stats(self, sessions: list[SessionRecord]) -> dict[str, int]:
        """
        セッション群のCSRFトークン状況を集計

        Returns:
            totalSessions / sessionsWithCSRF / expiredTokens
        """
        now = self._clock()
        with_token = [s for s in sessions if s.csrf_token]
        expired = [
            s
            for s in with_token
            if s.csrf_token_expiry is not None and s.csrf_token_expiry < now
        ]
        return {
            "totalSessions": len(sessions),
            "sessionsWithCSRF": len(with_token),
            "expiredTokens": len(expired),
        }
