"""セッションセキュリティミドルウェア"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from redis.exceptions import RedisError

from ...application.services import SessionServices
from ...core.logging import get_logger
from ...domain.exceptions import (
    DomainError,
    SessionExpiredError,
    SessionServiceError,
    UnauthorizedError,
)
from ...presentation.exceptions import domain_error_to_api_error
from ...utils.session_helper import (
    build_request_context,
    clear_session_cookie,
    set_session_cookie,
)

logger = get_logger(__name__)

# セッションチェーンを通さないパス
SESSIONLESS_PATH_PREFIXES = ("/api/system/healthcheck",)


async def session_security_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    セッションセキュリティミドルウェア

    Cookieのセッションを読み込み、セキュリティチェーンを通してから
    request.state に設定する。

    - request.state.session: 検証済みのSessionRecord（未認証ならNone）
    - request.state.session_id: セッションID
    - request.state.regenerated_session_id: ログイン時に再生成したID
    - request.state.previous_last_accessed: 今回のアクセス前の最終アクセス時刻

    チェーンが失敗した場合はハンドラーを呼ばずにエラーレスポンスを返す。
    セッションが破棄される失敗（401/440）ではセッションCookieも削除する。
    有効なセッションのレスポンスではCookieの有効期限を延長する。

    Args:
        request: HTTPリクエスト
        call_next: 次のミドルウェア/エンドポイント

    Returns:
        HTTPレスポンス
    """
    services: SessionServices = request.app.state.services
    settings = services.settings

    if request.url.path.startswith(SESSIONLESS_PATH_PREFIXES):
        request.state.session = None
        return await call_next(request)

    ctx = build_request_context(request, settings)

    try:
        outcome = await services.chain.run(ctx)
    except DomainError as e:
        logger.info(f"Session security rejected {ctx.method} {ctx.path}: {e.code}")
        response = domain_error_to_api_error(e).to_json_response()
        if isinstance(e, (UnauthorizedError, SessionExpiredError)):
            clear_session_cookie(response, settings)
        return response
    except RedisError as e:
        logger.error(f"Session store error: {e}", exc_info=True)
        return domain_error_to_api_error(SessionServiceError()).to_json_response()

    session = outcome.session
    request.state.session = session
    request.state.session_id = session.session_id if session else None
    request.state.regenerated_session_id = outcome.regenerated_session_id
    request.state.previous_last_accessed = outcome.previous_last_accessed
    request.state.client_ip = ctx.ip
    request.state.user_agent = ctx.user_agent

    response = await call_next(request)

    current = request.state.session
    if current is not None and current.is_active and not outcome.is_login:
        # アクセスのたびにCookieの有効期限も延長する
        set_session_cookie(response, settings, current.session_id)
    elif outcome.regenerated_session_id and current is None:
        # ログインが失敗した場合でも再生成済みのIDをクライアントに渡す
        set_session_cookie(response, settings, outcome.regenerated_session_id)

    return response
