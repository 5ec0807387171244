"""CSRF保護ミドルウェア（ダブルサブミット方式）"""

import json
from collections.abc import Awaitable, Callable
from typing import Optional
from urllib.parse import parse_qs

from fastapi import Request, Response
from redis.exceptions import RedisError

from ...application.services import SessionServices
from ...core.logging import get_logger
from ...domain.exceptions import CsrfValidationError, SessionServiceError
from ...domain.models import SecurityEventType, SessionRecord, Severity
from ...infrastructure.security.csrf import SAFE_METHODS
from ...presentation.exceptions import domain_error_to_api_error
from ...utils.session_helper import set_csrf_token

logger = get_logger(__name__)


async def _token_from_body(request: Request, field: str) -> Optional[str]:
    """
    ボディからCSRFトークンを取り出す

    JSONとURLエンコードされたフォームのみ対応する
    """
    content_type = request.headers.get("Content-Type", "")
    if not content_type.startswith(("application/json", "application/x-www-form-urlencoded")):
        return None

    body = await request.body()
    if not body:
        return None

    if content_type.startswith("application/json"):
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        value = data.get(field) if isinstance(data, dict) else None
        return value if isinstance(value, str) else None

    values = parse_qs(body.decode("utf-8", errors="replace")).get(field)
    return values[0] if values else None


async def _issue_token(
    request: Request,
    services: SessionServices,
    session: SessionRecord,
    response: Response,
) -> None:
    # ハンドラーで発行済みならそのトークンをそのまま返す
    if getattr(request.state, "csrf_token_issued", False) and session.csrf_token:
        token = session.csrf_token
    else:
        token = services.csrf.issue(session)
    await services.manager.save(session)
    set_csrf_token(response, services.settings, token)


async def csrf_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    CSRF保護ミドルウェア

    - セッションのあるGETリクエストでトークンを発行する
    - セッションのある状態変更リクエストでヘッダーまたはボディのトークンを検証する
    - 状態変更が成功したらトークンを更新する

    認証エンドポイント（/auth/、/api/auth/）は検証の対象外

    Args:
        request: HTTPリクエスト
        call_next: 次のミドルウェア/エンドポイント

    Returns:
        HTTPレスポンス
    """
    services: SessionServices = request.app.state.services
    settings = services.settings
    method = request.method.upper()
    path = request.url.path
    session: Optional[SessionRecord] = getattr(request.state, "session", None)

    if session is not None and services.csrf.requires_validation(method, path):
        submitted = request.headers.get(settings.CSRF_HEADER_NAME)
        if not submitted:
            submitted = await _token_from_body(request, settings.CSRF_BODY_FIELD)
        try:
            services.csrf.validate(session, submitted)
        except CsrfValidationError as e:
            logger.warning(f"CSRF validation failed for {method} {path}: {e.code}")
            await services.events.report_security_event(
                session.principal,
                SecurityEventType.CSRF_VALIDATION_FAILED.value,
                Severity.WARNING,
                {"reason": e.code, "method": method, "path": path},
                session_id=session.session_id,
                ip=getattr(request.state, "client_ip", None),
                user_agent=getattr(request.state, "user_agent", None),
                audit_event="CSRF validation failed",
            )
            return domain_error_to_api_error(e).to_json_response()

    response = await call_next(request)

    # ハンドラーでログイン・ログアウトした場合はその結果に従う
    session = getattr(request.state, "session", None)
    if session is None or not session.is_active:
        return response

    try:
        if method == "GET":
            await _issue_token(request, services, session, response)
        elif method not in SAFE_METHODS and response.status_code < 400:
            await _issue_token(request, services, session, response)
    except RedisError as e:
        logger.error(f"Failed to store CSRF token: {e}", exc_info=True)
        return domain_error_to_api_error(SessionServiceError()).to_json_response()

    return response
