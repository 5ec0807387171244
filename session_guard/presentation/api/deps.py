from typing import Optional

from fastapi import Depends, Request

from ...application.services import SessionServices
from ...core.config import Settings
from ...domain.exceptions import UnauthorizedError
from ...domain.models import SessionRecord


def get_services(request: Request) -> SessionServices:
    """サービスコンテナを取得するdependency"""
    return request.app.state.services


def get_app_settings(services: SessionServices = Depends(get_services)) -> Settings:
    return services.settings


def get_current_session(request: Request) -> Optional[SessionRecord]:
    """
    ミドルウェアで検証済みのセッションを取得するdependency

    未認証の場合はNone
    """
    return getattr(request.state, "session", None)


def require_authenticated_session(
    session: Optional[SessionRecord] = Depends(get_current_session),
) -> SessionRecord:
    """
    有効なセッションを必須とするdependency

    Raises:
        UnauthorizedError: セッションがない、または無効化済み
    """
    if session is None or not session.is_active:
        raise UnauthorizedError("Authentication required")
    return session


def require_wallet_authentication(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SessionRecord:
    """
    ウォレット認証済みのセッションを必須とするdependency

    Raises:
        UnauthorizedError: ウォレットアドレスがない、またはトークンが一致しない
    """
    if not session.wallet_address or not services.manager.token_matches(session):
        raise UnauthorizedError(
            "Wallet authentication required", code="WALLET_AUTH_REQUIRED"
        )
    return session
