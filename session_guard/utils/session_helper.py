"""
セッション管理ヘルパー

FastAPIのRequestとResponseからクライアント情報やCookieを扱うための便利な関数
"""

from typing import Optional

from fastapi import Request, Response

from ..application.security_chain import RequestContext
from ..core.config import Settings
from ..infrastructure.security.fingerprint import DeviceSignals

CLIENT_IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For")
COUNTRY_HEADER = "CF-IPCountry"


def get_client_ip(request: Request) -> str:
    """
    クライアントIPアドレスを取得

    CF-Connecting-IP、X-Forwarded-For、client.hostの順に参照する

    Args:
        request: FastAPI Request

    Returns:
        クライアントIPアドレス（不明な場合は空文字列）
    """
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-Forには複数のIPが含まれる可能性があるため、最初のものを使用
            return value.split(",")[0].strip()
    return request.client.host if request.client else ""


def get_user_agent(request: Request) -> str:
    """User-Agentヘッダーを取得"""
    return request.headers.get("User-Agent", "")


def get_device_signals(request: Request) -> DeviceSignals:
    """フィンガープリント用のリクエスト属性を取得"""
    return DeviceSignals(
        user_agent=get_user_agent(request),
        accept_language=request.headers.get("Accept-Language", ""),
        accept_encoding=request.headers.get("Accept-Encoding", ""),
        accept=request.headers.get("Accept", ""),
        ip_address=get_client_ip(request),
    )


def build_request_context(request: Request, settings: Settings) -> RequestContext:
    """
    セキュリティチェーンに渡すリクエスト属性をまとめる

    Args:
        request: FastAPI Request
        settings: アプリケーション設定
    """
    return RequestContext(
        method=request.method,
        path=request.url.path,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
        signals=get_device_signals(request),
        session_id=request.cookies.get(settings.SESSION_COOKIE_NAME) or None,
        country=request.headers.get(COUNTRY_HEADER) or None,
    )


def set_session_cookie(response: Response, settings: Settings, session_id: str) -> None:
    """
    セッションIDをCookieに設定

    本番環境ではHTTPSのみ・SameSite=Strict
    """
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=settings.SESSION_TIMEOUT,
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict" if settings.is_production else "lax",
    )


def set_csrf_token(
    response: Response, settings: Settings, token: Optional[str]
) -> None:
    """
    CSRFトークンをCookieとレスポンスヘッダーに設定

    クライアントのスクリプトから読めるようHttpOnlyにはしない
    """
    if not token:
        return
    response.set_cookie(
        key=settings.CSRF_COOKIE_NAME,
        value=token,
        max_age=settings.CSRF_TOKEN_EXPIRY,
        httponly=False,
        secure=settings.is_production,
        samesite="strict",
    )
    response.headers[settings.CSRF_HEADER_NAME] = token
