"""
Presentation層のAPIエラークラス

FastAPI/Pydanticに依存するAPIエラークラス。
ドメインエラーをHTTPレスポンスに変換する。
"""

import json
from typing import Any, Optional

from fastapi import HTTPException, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from ...domain.exceptions.base import (
    BadRequestError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    SessionExpiredError,
    SessionServiceError,
    UnauthorizedError,
    ValidationError,
)

# IIS由来の非標準ステータス（Login Time-out）
HTTP_440_LOGIN_TIMEOUT = 440


class ErrorResponse(BaseModel):
    """
    標準エラーレスポンス

    Attributes:
        status: ステータス（常に"error"）
        code: エラーコード
        error: エラーメッセージ
        details: エラーの詳細情報（オプション）
        retry_after: 再試行までの秒数（レート制限時のみ）
    """

    model_config = ConfigDict(populate_by_name=True)

    status: str = "error"
    code: str
    error: str
    details: Optional[list[dict[str, Any]] | dict[str, Any]] = None
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")

    def to_content(self) -> dict[str, Any]:
        """未設定の項目を除いたJSON本文"""
        return jsonable_encoder(self.model_dump(by_alias=True, exclude_none=True))


class APIError(HTTPException):
    """
    API エラーの基底クラス

    FastAPIのHTTPExceptionを継承し、ドメインエラーを
    HTTPレスポンスに変換する。

    Attributes:
        status_code: HTTPステータスコード
        error_code: エラーコード
        error_message: エラーメッセージ
        details: エラーの詳細情報
        retry_after: 再試行までの秒数
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_SERVER_ERROR"
    error_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[list[dict[str, Any]] | dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        self.error_message = message or self.error_message
        self.details = details
        self.retry_after = retry_after
        super().__init__(status_code=self.status_code, detail=self.error_message)

    def to_response(self) -> ErrorResponse:
        """
        標準エラーレスポンス形式に変換

        Returns:
            ErrorResponse: 標準エラーレスポンス
        """
        return ErrorResponse(
            code=self.error_code,
            error=self.error_message,
            details=self.details,
            retry_after=self.retry_after,
        )

    def to_json_response(self) -> Response:
        """JSONレスポンスに変換（レート制限時はRetry-Afterヘッダーも付ける）"""
        headers = {}
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return Response(
            content=json.dumps(self.to_response().to_content()),
            status_code=self.status_code,
            media_type="application/json",
            headers=headers,
        )


# エラータイプに応じたHTTPステータスコードのマッピング（サブクラスは親の設定を継承）
STATUS_MAP: dict[type, int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BadRequestError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    SessionExpiredError: HTTP_440_LOGIN_TIMEOUT,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    SessionServiceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(domain_error: DomainError) -> int:
    for klass in type(domain_error).__mro__:
        if klass in STATUS_MAP:
            return STATUS_MAP[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def domain_error_to_api_error(domain_error: DomainError) -> APIError:
    """
    ドメインエラーをAPIエラーに変換

    Args:
        domain_error: ドメイン層のエラー

    Returns:
        APIError: API層のエラー

    Examples:
        >>> from session_guard.domain.exceptions import SessionHijackError
        >>> api_err = domain_error_to_api_error(SessionHijackError())
        >>> api_err.status_code
        401
    """
    api_error = APIError(
        message=domain_error.message,
        details=domain_error.details,
        retry_after=getattr(domain_error, "retry_after", None),
    )
    api_error.status_code = status_code_for(domain_error)
    api_error.error_code = domain_error.code
    return api_error
