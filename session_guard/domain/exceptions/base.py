"""
ドメイン層の例外クラス

セッションセキュリティで発生するエラーを表現する純粋なPython例外。
フレームワークに依存しない。HTTPステータスへの変換はPresentation層で行う。
"""

from typing import Any, Optional


class DomainError(Exception):
    """
    ドメイン層のベース例外

    Attributes:
        message: エラーメッセージ
        code: エラーコード（識別子）
        details: エラーの詳細情報（オプション）
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            message: エラーメッセージ
            code: エラーコード
            details: エラーの詳細情報（オプション）
        """
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)


class NotFoundError(DomainError):
    """リソースが見つからない場合のエラー"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="NOT_FOUND", details=details)


class BadRequestError(DomainError):
    """不正なリクエストエラー"""

    def __init__(
        self,
        message: str = "Bad request",
        details: Optional[dict[str, Any]] = None,
        code: str = "BAD_REQUEST",
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class UnauthorizedError(DomainError):
    """
    認証エラー

    セッションが存在しない、または無効な場合に送出する。
    サブクラスはセッションの完全性違反（乗っ取り・端末不一致など）を表す。
    """

    def __init__(
        self,
        message: str = "Authentication required",
        details: Optional[dict[str, Any]] = None,
        code: str = "UNAUTHORIZED",
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class ForbiddenError(DomainError):
    """アクセス権限エラー"""

    def __init__(
        self,
        message: str = "Access forbidden",
        details: Optional[dict[str, Any]] = None,
        code: str = "FORBIDDEN",
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class ValidationError(BadRequestError):
    """バリデーションエラー"""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[dict[str, Any] | list[dict[str, Any]]] = None,
    ) -> None:
        """
        Args:
            message: エラーメッセージ
            details: エラーの詳細情報（オプション）
                    リストまたは辞書形式で複数のバリデーションエラーを含められる
        """
        super().__init__(message=message, details=None, code="VALIDATION_ERROR")
        # list[dict] または dict の両方をサポート
        self.details = details  # type: ignore[assignment]


class InvalidSessionTokenError(UnauthorizedError):
    """セッショントークンが復号できない、またはウォレットアドレスが一致しない"""

    def __init__(
        self,
        message: str = "Invalid session token",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details, code="INVALID_SESSION_TOKEN")


class DeviceMismatchError(UnauthorizedError):
    """未信頼端末のフィンガープリントがベースラインと一致しない"""

    def __init__(
        self,
        message: str = "Device fingerprint mismatch",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details, code="DEVICE_MISMATCH")


class SessionHijackError(UnauthorizedError):
    """セッションに紐づくUser-Agent/IPと異なるリクエスト"""

    def __init__(
        self,
        message: str = "Session hijacking detected",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message, details=details, code="SESSION_HIJACK_DETECTED"
        )


class SessionExpiredError(DomainError):
    """アイドルタイムアウトまたは絶対タイムアウトの超過（HTTP 440）"""

    def __init__(
        self,
        message: str = "Session expired",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="SESSION_EXPIRED", details=details)


class CsrfValidationError(ForbiddenError):
    """CSRFトークンの欠落・不一致・期限切れ"""

    def __init__(
        self,
        message: str = "Invalid CSRF token",
        code: str = "CSRF_TOKEN_INVALID",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details, code=code)


class RateLimitExceededError(DomainError):
    """
    レート制限超過

    Attributes:
        retry_after: 再試行まで待つべき秒数
    """

    def __init__(
        self,
        retry_after: int,
        message: str = "Too many requests",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="RATE_LIMIT_EXCEEDED", details=details)
        self.retry_after = retry_after


class SessionServiceError(DomainError):
    """セッションストア（Redis）または暗号処理の内部エラー"""

    def __init__(
        self,
        message: str = "Session service unavailable",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message, code="SESSION_SERVICE_UNAVAILABLE", details=details
        )
