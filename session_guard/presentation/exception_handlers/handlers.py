"""FastAPI例外ハンドラー"""

import json
from typing import Awaitable, Callable, cast

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import (
    HTTPException as FastAPIHTTPException,
    RequestValidationError,
)

from ...core import (
    APIError,
    DomainError,
    ErrorResponse,
    ValidationError,
    domain_error_to_api_error,
)


async def domain_error_handler(request: Request, exc: DomainError) -> Response:
    """DomainError例外ハンドラ"""
    return domain_error_to_api_error(exc).to_json_response()


async def api_error_handler(request: Request, exc: APIError) -> Response:
    """APIError例外ハンドラ"""
    return exc.to_json_response()


async def http_exception_handler(
    request: Request, exc: FastAPIHTTPException
) -> Response:
    """HTTPException例外ハンドラ"""
    error = ErrorResponse(code="HTTP_ERROR", error=str(exc.detail))
    return Response(
        content=json.dumps(error.to_content()),
        status_code=exc.status_code,
        media_type="application/json",
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    """バリデーションエラーハンドラ（Pydantic）"""
    error = ValidationError(
        message="Invalid request body",
        details=[
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ],
    )
    return domain_error_to_api_error(error).to_json_response()


def register_exception_handlers(app: FastAPI) -> None:
    """
    FastAPIアプリケーションに例外ハンドラーを登録

    Args:
        app: FastAPIアプリケーションインスタンス
    """
    # Starletteの型定義に合わせるためのキャスト
    handler_type = Callable[[Request, Exception], Awaitable[Response]]

    app.add_exception_handler(DomainError, cast(handler_type, domain_error_handler))
    app.add_exception_handler(APIError, cast(handler_type, api_error_handler))
    app.add_exception_handler(
        FastAPIHTTPException, cast(handler_type, http_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast(handler_type, validation_exception_handler)
    )
